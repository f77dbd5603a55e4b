"""Prompt builders for transition explanations, verification assessments and chat.

Inputs are ORM objects (Drug, ScanEvent, Alert) or anything with the same
attributes. Output is a messages list ready for GroqClient.complete().
"""
from typing import Iterable, Optional

from ai.groq_client import SYSTEM_PROMPT

CHAT_SYSTEM_PROMPT = """You are MediTrack AI Assistant, an expert in pharmaceutical supply chain verification and drug authenticity.
You help consumers, pharmacies, and regulators understand drug verification results and supply chain tracking.

Your capabilities:
1. Explain why a drug is marked as genuine, suspicious, or counterfeit
2. Help understand alerts and warnings
3. Guide users through compliance steps
4. Answer questions about the drug supply chain
5. Provide insights into verification results

Always be helpful, clear, and concise. If discussing a specific drug, use the provided context.
If you don't have enough information, say so clearly."""


def drug_summary(drug, event_count: int, alert_count: int) -> str:
    return (
        f"Drug: {drug.name}\n"
        f"Batch: {drug.batch_number}\n"
        f"Status: {drug.status}\n"
        f"Expiry Date: {drug.expiry_date}\n"
        f"Scan Count: {event_count}\n"
        f"Alerts: {alert_count}"
    )


def scan_history(events: Iterable) -> str:
    lines = [
        f"{_ts(e.scanned_at)}: {e.role} at {e.location or 'Unknown'} - {e.result}"
        for e in events
    ]
    return "\n".join(lines) or "No scan history"


def _ts(value) -> str:
    return value.isoformat() if value is not None else "unknown time"


def build_explain_messages(drug, action: str, role: Optional[str], events: list, alerts: list) -> list[dict]:
    active = "; ".join(a.description for a in alerts if not a.resolved) or "None"
    prompt = f"""Generate a brief, human-readable explanation (2-3 sentences max) for the following drug status update.

{drug_summary(drug, len(events), len(alerts))}

Recent Action: {action}
Performed by: {role or 'System'}

Previous Scan History:
{scan_history(events)}

Active Alerts: {active}

Generate a clear, professional explanation of what this means for the drug's authenticity and supply chain tracking. Focus on being reassuring if the drug is legitimate, or alerting if there are concerns."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def build_verify_messages(drug, events: list, alerts: list) -> list[dict]:
    alert_lines = "\n".join(f"{a.alert_type}: {a.description}" for a in alerts) or "None"
    prompt = f"""Analyze this drug's verification status and provide a brief assessment.

{drug_summary(drug, len(events), len(alerts))}

Scan History:
{scan_history(events)}

Alerts: {alert_lines}

Provide a 2-3 sentence verification assessment. State clearly if the drug appears genuine, suspicious, or counterfeit, and briefly explain why."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def build_chat_messages(message: str, history: list[dict], drug=None, events: Optional[list] = None,
                        alerts: Optional[list] = None, alert=None) -> list[dict]:
    """`history` must already be truncated by the caller."""
    system = CHAT_SYSTEM_PROMPT
    if drug is not None:
        alert_lines = "\n".join(f"- {a.alert_type}: {a.description}" for a in (alerts or [])) or "No alerts"
        event_lines = "\n".join(
            f"- {_ts(e.scanned_at)}: {e.role} - {e.result} at {e.location or 'Unknown location'}"
            for e in (events or [])
        ) or "No scans recorded"
        system += f"""

Current Drug Information:
- Name: {drug.name}
- Batch: {drug.batch_number}
- Status: {drug.status}
- Expiry: {drug.expiry_date}

Scan History:
{event_lines}

Alerts:
{alert_lines}"""
    if alert is not None:
        system += f"\n\nAlert in question: {alert.alert_type}: {alert.description} (resolved: {alert.resolved})"

    return (
        [{"role": "system", "content": system}]
        + [{"role": turn["role"], "content": turn["content"]} for turn in history]
        + [{"role": "user", "content": message}]
    )
