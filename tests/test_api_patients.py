"""Tests for the patient roster API."""

from __future__ import annotations

import pytest


class TestPatientsApi:
    """CRUD and search over /api/patients."""

    @pytest.mark.asyncio
    async def test_create_patient(self, client):
        """Test registering a patient assigns the next code."""
        response = await client.post(
            "/api/patients",
            json={
                "name": "Sarah Johnson",
                "phone": "+1234567891",
                "email": "sarah.j@email.com",
                "address": "456 Oak Ave, City",
                "medicalHistory": "Asthma, Allergies",
                "priority": "high",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        patient = body["patient"]
        assert patient["patient_code"] == "P0001"
        assert patient["medical_history"] == "Asthma, Allergies"
        assert patient["priority"] == "high"
        assert patient["last_contact"] is not None

    @pytest.mark.asyncio
    async def test_codes_increment(self, client, sample_patient):
        response = await client.post("/api/patients", json={"name": "Michael Brown", "phone": "+1234567892"})

        assert response.json()["patient"]["patient_code"] == "P0002"
        assert response.json()["patient"]["priority"] == "medium"

    @pytest.mark.asyncio
    async def test_create_validation_error(self, client):
        """Test invalid input returns the error envelope with field details."""
        response = await client.post("/api/patients", json={"name": "", "phone": "+1", "priority": "urgent"})

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "validation_error"
        fields = {detail["field"] for detail in body["details"]}
        assert {"name", "priority"} <= fields

    @pytest.mark.asyncio
    async def test_list_and_search(self, client, sample_patient):
        await client.post("/api/patients", json={"name": "Sarah Johnson", "phone": "+1234567891"})

        all_patients = (await client.get("/api/patients")).json()["patients"]
        assert {p["name"] for p in all_patients} == {"John Smith", "Sarah Johnson"}

        found = (await client.get("/api/patients", params={"search": "john"})).json()["patients"]
        assert {p["name"] for p in found} == {"John Smith", "Sarah Johnson"}

        by_code = (await client.get("/api/patients", params={"search": "P0001"})).json()["patients"]
        assert [p["name"] for p in by_code] == ["John Smith"]

    @pytest.mark.asyncio
    async def test_get_patient(self, client, sample_patient):
        by_code = await client.get("/api/patients/P0001")
        by_id = await client.get(f"/api/patients/{sample_patient.id}")

        assert by_code.status_code == 200
        assert by_code.json()["patient"]["name"] == "John Smith"
        assert by_id.json()["patient"]["patient_code"] == "P0001"

    @pytest.mark.asyncio
    async def test_get_missing_patient(self, client):
        response = await client.get("/api/patients/P0404")

        assert response.status_code == 404
        assert response.json()["success"] is False
        assert response.json()["error"] == "Patient not found"

    @pytest.mark.asyncio
    async def test_update_patient(self, client, sample_patient):
        """Test a partial update leaves other fields untouched."""
        response = await client.put(
            "/api/patients/P0001",
            json={"priority": "critical", "medicalHistory": "Hypertension"},
        )

        assert response.status_code == 200
        patient = response.json()["patient"]
        assert patient["priority"] == "critical"
        assert patient["medical_history"] == "Hypertension"
        assert patient["phone"] == "+1234567890"

    @pytest.mark.asyncio
    async def test_update_missing_patient(self, client):
        response = await client.put("/api/patients/P0404", json={"name": "Nobody"})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_phone_must_be_dialable(self, client, sample_patient):
        """Test phones outside E.164 are rejected on create and update."""
        created = await client.post("/api/patients", json={"name": "Sarah Johnson", "phone": "555-0100"})
        updated = await client.put("/api/patients/P0001", json={"phone": "(555) 010-0000"})

        assert created.status_code == 422
        assert {d["field"] for d in created.json()["details"]} == {"phone"}
        assert updated.status_code == 422
        assert (await client.get("/api/patients/P0001")).json()["patient"]["phone"] == "+1234567890"

    @pytest.mark.asyncio
    async def test_stored_phone_can_be_called(self, client, mock_gateway, call_repository):
        """Test a registered patient's phone is accepted by call initiation and links the call."""
        patient = (
            await client.post("/api/patients", json={"name": "Sarah Johnson", "phone": "+15557654321"})
        ).json()["patient"]

        response = await client.post("/api/calls/initiate", json={"to": patient["phone"]})

        assert response.status_code == 200
        mock_gateway.create_call.assert_awaited_once()
        call = await call_repository.find_by_reference(response.json()["callId"])
        assert str(call.patient_id) == patient["id"]

    @pytest.mark.asyncio
    async def test_delete_patient(self, client, sample_patient):
        response = await client.delete("/api/patients/P0001")

        assert response.status_code == 200
        assert (await client.get("/api/patients/P0001")).status_code == 404

    @pytest.mark.asyncio
    async def test_patient_calls(self, client, sample_call):
        response = await client.get("/api/patients/P0001/calls")

        calls = response.json()["calls"]
        assert [c["call_code"] for c in calls] == [sample_call.call_code]
