"""Deterministic text used whenever the LLM is unavailable.

These strings are part of the contract: a transition or verification must
read the same with or without the LLM configured.
"""

REGISTRATION_EXPLANATION = "Drug registered in the system by manufacturer."
UNKNOWN_DRUG_EXPLANATION = "Unable to find drug information for verification."
CHAT_FALLBACK = "Sorry, there was an error processing your request. Please try again."


def transition_fallback(status: str, role: str) -> str:
    return f"Drug status updated to {status} by {role}."


def explain_fallback(drug) -> str:
    return (
        f"Drug {drug.name} (Batch: {drug.batch_number}) status updated to {drug.status}. "
        "The supply chain record has been updated accordingly."
    )


def verify_fallback(drug, alert_count: int) -> str:
    if drug.status == "flagged":
        return (
            f"Drug {drug.name} (Batch: {drug.batch_number}) has been flagged as suspicious. "
            "Do not use it and report it to your pharmacist."
        )
    if alert_count:
        return (
            f"Drug {drug.name} (Batch: {drug.batch_number}) is registered, "
            f"but {alert_count} alert(s) are on record. Check them before use."
        )
    return (
        f"Drug {drug.name} (Batch: {drug.batch_number}) is registered and its supply chain "
        f"record is intact. Current status: {drug.status}."
    )
