"""Fixed vocabularies shared by models, schemas and services."""
from enum import Enum


class Role(str, Enum):
    """Supply-chain roles. A user whose role is NULL is 'role pending'."""
    MANUFACTURER = "manufacturer"
    DISTRIBUTOR = "distributor"
    PHARMACY = "pharmacy"
    CONSUMER = "consumer"
    ADMIN = "admin"


class DrugStatus(str, Enum):
    """Custody status. FLAGGED is absorbing."""
    CREATED = "created"
    DISTRIBUTED = "distributed"
    IN_PHARMACY = "in_pharmacy"
    SOLD = "sold"
    FLAGGED = "flagged"


class ScanResult(str, Enum):
    """Result code on a scan event: a status for transitions, or an observation."""
    CREATED = "created"
    DISTRIBUTED = "distributed"
    IN_PHARMACY = "in_pharmacy"
    SOLD = "sold"
    FLAGGED = "flagged"
    VERIFIED = "verified"
