# clinic_agenda/models.py
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"   # YYYY-MM-DD, unzoned
TIME_PATTERN = r"^\d{2}:\d{2}$"         # HH:MM, local


class AppointmentStatus(str, Enum):
    SCHEDULED = "PROGRAMADA"
    COMPLETED = "COMPLETADA"
    CANCELLED = "CANCELADA"


class Sender(str, Enum):
    DOCTOR = "doctor"
    PATIENT = "patient"


class TreatmentPreset(str, Enum):
    CLEANING = "Limpieza General"
    ORTHODONTICS = "Ortodoncia"
    EXTRACTION = "Extracción"
    WHITENING = "Blanqueamiento"
    CHECKUP = "Revisión Rutinaria"


class PresetTreatment(BaseModel):
    kind: Literal["preset"] = "preset"
    name: TreatmentPreset

    @property
    def label(self) -> str:
        return self.name.value


class CustomTreatment(BaseModel):
    kind: Literal["custom"] = "custom"
    text: str

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Por favor especifica el tratamiento.")
        return v.strip()

    @property
    def label(self) -> str:
        return self.text


Treatment = Annotated[Union[PresetTreatment, CustomTreatment], Field(discriminator="kind")]


def treatment_from_label(label: str) -> Union[PresetTreatment, CustomTreatment]:
    """Inverse of ``Treatment.label`` for strings read back from the store."""
    try:
        return PresetTreatment(name=TreatmentPreset(label))
    except ValueError:
        return CustomTreatment(text=label)


class ChatMessage(BaseModel):
    id: str
    sender: Sender
    text: str
    timestamp: int  # epoch ms, client clock


class ChatMessageCreate(BaseModel):
    text: str


def _required_name(v: Optional[str]) -> str:
    if v is None or not v.strip():
        raise ValueError("patient_name is required")
    return v.strip()


class AppointmentForm(BaseModel):
    """Shared create form of the admin dashboard."""
    patient_name: str = Field(..., min_length=1)
    patient_email: Optional[str] = None
    patient_phone: Optional[str] = None
    date: str = Field(..., pattern=DATE_PATTERN)
    time: str = Field(..., pattern=TIME_PATTERN)
    treatment: Treatment

    @field_validator("patient_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _required_name(v)


class AppointmentEdit(BaseModel):
    """Partial edit. Omitted fields stay as they are; optional contact fields may be cleared with null."""
    patient_name: Optional[str] = Field(default=None, min_length=1)
    patient_email: Optional[str] = None
    patient_phone: Optional[str] = None
    date: Optional[str] = Field(default=None, pattern=DATE_PATTERN)
    time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    treatment: Optional[Treatment] = None
    doctor_notes: Optional[str] = None

    # validators only run on values the client actually sent
    @field_validator("patient_name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> str:
        return _required_name(v)

    @field_validator("date", "time", "treatment")
    @classmethod
    def not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be cleared")
        return v

    def to_fields(self) -> dict:
        fields = self.model_dump(exclude_unset=True, exclude={"treatment"})
        if self.treatment is not None:
            fields["treatment_type"] = self.treatment.label
        return fields


class Appointment(BaseModel):
    id: str
    patient_name: str
    patient_email: Optional[str] = None
    patient_phone: Optional[str] = None
    date: str = ""
    time: str = ""
    treatment_type: str = ""
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    created_at: int
    cancellation_reason: Optional[str] = None
    doctor_notes: Optional[str] = None
    patient_comments: Optional[str] = None  # legacy single comment, superseded by messages
    messages: List[ChatMessage] = Field(default_factory=list)

    @property
    def treatment(self) -> Union[PresetTreatment, CustomTreatment]:
        return treatment_from_label(self.treatment_type)

    @classmethod
    def from_document(cls, doc: dict) -> "Appointment":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        # old records may carry messages: null
        data["messages"] = data.get("messages") or []
        return cls(**data)


class CancelRequest(BaseModel):
    reason: str


class SignInRequest(BaseModel):
    credential: str  # Google ID token


class Session(BaseModel):
    session_id: str
    email: str
    name: Optional[str] = None
    created_at: int
    expires_at: int


class AgendaStats(BaseModel):
    total: int
    today: int
    by_status: Dict[str, int]
    by_treatment: Dict[str, int]


class ShareLinks(BaseModel):
    share_url: str
    whatsapp_url: Optional[str] = None
    mailto_url: Optional[str] = None
