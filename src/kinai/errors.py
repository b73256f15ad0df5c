"""Exceptions raised by kinai."""


class KinaiError(Exception):
    """Base class for kinai errors."""


class ValidationError(KinaiError):
    """A required intake field is missing."""


class PatientNotFoundError(KinaiError):
    """No patient with the requested identifier."""

    def __init__(self, patient_id: str):
        super().__init__(f"Patient {patient_id} not found.")
        self.patient_id = patient_id
