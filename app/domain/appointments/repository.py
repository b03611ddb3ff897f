"""Appointment repository - Database operations for appointments"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointment, Customer, Pet, Service


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def get_customer(db: Session, customer_id: int) -> Optional[Customer]:
        return db.query(Customer).filter(Customer.id == customer_id).first()

    @staticmethod
    def get_pet(db: Session, pet_id: int, owner_id: int) -> Optional[Pet]:
        return (
            db.query(Pet)
            .filter(Pet.id == pet_id, Pet.owner_id == owner_id, Pet.is_active.is_(True))
            .first()
        )

    @staticmethod
    def get_service(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id, Service.is_active.is_(True)).first()
