# services/triage.py
import logging
import re
from collections import Counter
from typing import List, Optional

import requests

SYSTEM_PROMPT = """You are the Bibi Foundation intake assistant. Your job is to gather symptoms,
background, urgency signals, and any barriers (transportation, insurance, languages) so you can recommend
the most appropriate type of clinic or specialist. Provide empathetic, plain-language guidance. Avoid
making diagnoses or definitive clinical claims; instead, suggest likely types of care (e.g., dental emergency
clinic, urgent care, mental health counselor) and when to seek emergency services. Summarize the
information you collected and the recommended next steps."""

DURATION_RE = re.compile(r"(\d+\s*(?:minutes?|hours?|days?|weeks?|months?|years?))", re.IGNORECASE)
EMERGENCY_RE = re.compile(
    r"(chest pain|shortness of breath|trouble breathing|can't breathe|stroke|numbness on one side|"
    r"loss of vision|severe bleeding|suicidal|overdose|unconscious)",
    re.IGNORECASE,
)

BARRIERS = [
    ("transport", ("transport", "bus", "ride", "car")),
    ("insurance", ("insurance", "uninsured", "medicaid", "no coverage")),
    ("language", ("language", "spanish", "arabic", "translator", "interpret")),
]

CARE_PATTERNS = [
    (re.compile(r"(tooth|teeth|dental|gum|cavity|jaw|filling)", re.IGNORECASE), "dental clinic or emergency dentist"),
    (re.compile(r"(pregnan|ob\b|prenatal|postpartum)", re.IGNORECASE), "OB-GYN or women's health clinic"),
    (re.compile(r"(mental|anxiety|depress|therapy|counselor|psych)", re.IGNORECASE),
     "mental health counselor or psychiatrist"),
    (re.compile(r"(rash|fever|infection|cough|flu|cold)", re.IGNORECASE), "urgent care or community health center"),
    (re.compile(r"(vision|eye|optom|glaucoma)", re.IGNORECASE), "vision clinic or optometrist"),
    (re.compile(r"(vaccin|immunization|shots)", re.IGNORECASE), "primary care or public health clinic"),
    (re.compile(r"(injury|fracture|sprain|break|stitches)", re.IGNORECASE), "urgent care or emergency clinic"),
]
DEFAULT_CARE = "community health clinic or primary care provider"

STOP_WORDS = {
    "the", "and", "but", "with", "have", "has", "had", "for", "about", "that", "this", "they", "them",
    "been", "felt", "feeling", "feel", "pain", "issue", "issues",
}


def clean_history(history) -> List[dict]:
    messages = []
    for msg in history or []:
        if not isinstance(msg, dict):
            continue
        role = "assistant" if msg.get("role") == "assistant" else "user"
        messages.append({"role": role, "content": str(msg.get("content") or "")})
    return messages


def user_text(history: List[dict]) -> str:
    return "\n".join(m["content"] for m in history if m["role"] == "user")


def extract_durations(text: str) -> List[str]:
    found = []
    for match in DURATION_RE.findall(text):
        value = match.lower()
        if value not in found:
            found.append(value)
    return found


def detect_barriers(text: str) -> List[str]:
    lower = text.lower()
    return [key for key, aliases in BARRIERS if any(alias in lower for alias in aliases)]


def recommend_care(text: str) -> str:
    for pattern, recommendation in CARE_PATTERNS:
        if pattern.search(text):
            return recommendation
    return DEFAULT_CARE


def summarize_symptoms(text: str) -> str:
    words = re.sub(r"[^a-z0-9\s]", " ", text.lower()).split()
    counts = Counter(w for w in words if len(w) >= 4 and w not in STOP_WORDS)
    ranked = [word for word, _ in counts.most_common(6)]
    return ", ".join(ranked) if ranked else "not clearly specified"


def heuristic_response(history: List[dict]) -> str:
    transcript = user_text(history)
    latest = next((m["content"] for m in reversed(history) if m["role"] == "user"), "")
    durations = extract_durations(transcript)
    barriers = detect_barriers(transcript)

    lines = [
        "Here's what I captured so far:",
        f"• Key concerns mentioned: {summarize_symptoms(transcript)}.",
        f"• Most recent details: {latest or 'no new information provided yet.'}",
        f"• Duration cues: {', '.join(durations) if durations else 'not mentioned'}.",
        f"• Reported barriers: {', '.join(barriers) if barriers else 'none noted'}.",
        "",
        "Recommended next steps:",
    ]

    if EMERGENCY_RE.search(transcript):
        lines += [
            "1. Symptoms sound urgent. Call 911 or go to the nearest emergency room immediately.",
            "2. If safe to do so, contact a trusted person or emergency contact to assist with transportation.",
            "3. Bring any medications, ID, and insurance or financial aid documents with you.",
        ]
    else:
        if "transport" in barriers:
            third = "3. Ask about transportation programs or bus vouchers when you call."
        elif "language" in barriers:
            third = "3. Request interpreter support or language services ahead of the visit."
        else:
            third = "3. Prepare questions about symptom changes, triggers, and available community resources."
        lines += [
            f"1. Follow up with a {recommend_care(transcript)} to review symptoms in detail.",
            "2. Bring photo ID, insurance documents (or proof of income if uninsured), and a current medication list.",
            third,
        ]

    lines += [
        "",
        "Reminder: If new warning signs appear (difficulty breathing, severe bleeding, sudden confusion), "
        "seek emergency care right away.",
    ]
    return "\n".join(lines)


class TriageService:
    def __init__(self, llm=None, service_url: str = None, service_key: str = None, timeout: int = 30,
                 session=None):
        self.llm = llm
        self.service_url = service_url
        self.service_key = service_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _call_custom_service(self, history: List[dict]) -> Optional[str]:
        headers = {"Content-Type": "application/json"}
        if self.service_key:
            headers["Authorization"] = f"Bearer {self.service_key}"
        resp = self.session.post(self.service_url, json={"systemPrompt": SYSTEM_PROMPT, "history": history},
                                 headers=headers, timeout=self.timeout)
        if resp.status_code != 200:
            raise RuntimeError(f"Custom triage service failed ({resp.status_code})")
        try:
            payload = resp.json()
        except ValueError:
            return None
        message = payload.get("message") if isinstance(payload, dict) else None
        return message.strip() if isinstance(message, str) and message.strip() else None

    def _call_llm(self, history: List[dict]) -> Optional[str]:
        return self.llm.chat(SYSTEM_PROMPT, history) or None

    def answer(self, question: str, history=None) -> str:
        messages = clean_history(history) + [{"role": "user", "content": question}]

        attempts = []
        if self.service_url:
            attempts.append(("custom", self._call_custom_service))
        if self.llm is not None:
            attempts.append(("llm", self._call_llm))

        for name, attempt in attempts:
            try:
                result = attempt(messages)
            except Exception as e:
                logging.error("Triage %s attempt failed: %s", name, str(e))
                continue
            if result:
                return result

        logging.info("Falling back to heuristic triage response")
        return heuristic_response(messages)
