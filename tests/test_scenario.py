# tests/test_scenario.py
# A full visit: booked by the clinic, discussed over chat, cancelled by the patient.
from clinic_agenda.context import AppContext


def test_booking_chat_and_patient_cancellation(client, admin_headers, monkeypatch):
    monkeypatch.setattr(AppContext, "today", lambda self: "2024-04-30")

    resp = client.post("/api/appointments/", headers=admin_headers, json={
        "patient_name": "Juan Pérez",
        "date": "2024-05-01",
        "time": "10:00",
        "treatment": {"kind": "preset", "name": "Limpieza General"},
    })
    appt_id = resp.json()["appointment"]["id"]

    agenda = client.get("/api/appointments/", params={"view": "agenda"}, headers=admin_headers).json()["appointments"]
    assert [(a["id"], a["status"]) for a in agenda] == [(appt_id, "PROGRAMADA")]

    client.post(f"/api/public/appointments/{appt_id}/messages", json={"text": "¿Puedo llegar 10 min tarde?"})
    admin_chat = client.get(f"/api/appointments/{appt_id}/messages", headers=admin_headers).json()["messages"]
    assert [m["text"] for m in admin_chat] == ["¿Puedo llegar 10 min tarde?"]

    client.post(f"/api/appointments/{appt_id}/messages", json={"text": "Sí, sin problema"}, headers=admin_headers)
    patient_view = client.get(f"/api/public/appointments/{appt_id}").json()["appointment"]
    assert [(m["sender"], m["text"]) for m in patient_view["messages"]] == [
        ("patient", "¿Puedo llegar 10 min tarde?"),
        ("doctor", "Sí, sin problema"),
    ]

    resp = client.post(f"/api/public/appointments/{appt_id}/cancel", json={"reason": "Me enfermé"})
    assert resp.json()["appointment"]["status"] == "CANCELADA"

    stored = client.get(f"/api/appointments/{appt_id}", headers=admin_headers).json()["appointment"]
    assert stored["status"] == "CANCELADA"
    assert stored["cancellation_reason"] == "Me enfermé"

    history = client.get("/api/appointments/", params={"view": "history"}, headers=admin_headers).json()["appointments"]
    agenda = client.get("/api/appointments/", params={"view": "agenda"}, headers=admin_headers).json()["appointments"]
    assert [a["id"] for a in history] == [appt_id]
    assert agenda == []
