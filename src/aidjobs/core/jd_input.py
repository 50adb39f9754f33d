"""Classify a free-form chat message as job-description generation input."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

InputType = Literal["briefWithLink", "briefOnly", "referenceLink", "unknown"]

RELIABLE_CONFIDENCE = 0.7
MAX_FOLLOW_UP_QUESTIONS = 3

_URL_PATTERN = re.compile(r"https?://\S+", re.IGNORECASE)
_SENTENCE_SPLIT = re.compile(r"[.!?]+")

JOB_KEYWORDS: tuple[str, ...] = (
    # role types
    "coordinator", "manager", "officer", "specialist", "consultant",
    "director", "assistant", "analyst", "advisor", "lead", "head",
    "supervisor", "administrator", "executive", "associate",
    # job terms
    "role", "position", "job", "vacancy", "opportunity", "opening",
    "responsibilities", "duties", "tasks", "requirements",
    "experience", "skills", "qualifications", "education",
    "degree", "certification", "background", "expertise",
    # actions
    "manage", "coordinate", "oversee", "implement", "develop",
    "support", "assist", "supervise", "monitor",
    "evaluate", "analyze", "report", "collaborate",
    # sector
    "program", "project", "community", "development", "humanitarian",
    "nonprofit", "ngo", "organization", "mission", "impact",
    "beneficiaries", "stakeholders", "partners", "donors",
    "field", "remote", "country", "region", "local",
)

JOB_BOARD_DOMAINS: tuple[str, ...] = (
    "indeed.com", "linkedin.com", "glassdoor.com", "monster.com",
    "careerbuilder.com", "ziprecruiter.com", "simplyhired.com",
    "idealist.org", "devex.com", "reliefweb.int", "devnetjobs.org",
    "jobs.org", "ngoaidmap.org", "interaction.org",
)

JOB_PATH_SEGMENTS: tuple[str, ...] = (
    "/jobs/", "/careers/", "/opportunities/", "/vacancies/",
    "/job/", "/career/", "/opportunity/", "/vacancy/",
    "/employment/", "/positions/", "/openings/", "/hiring/",
)

JOB_QUERY_PARAMS: tuple[str, ...] = ("job", "position", "role", "career", "vacancy")


@dataclass(slots=True)
class JDInputDetection:
    input_type: InputType
    confidence: float
    brief: str | None = None
    link: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "input_type": self.input_type,
            "confidence": self.confidence,
            "brief": self.brief,
            "link": self.link,
        }


def extract_urls(text: str) -> list[str]:
    return _URL_PATTERN.findall(text)


def contains_job_keywords(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in JOB_KEYWORDS)


def is_substantial_brief(text: str) -> bool:
    if len(text.split()) < 10:
        return False
    if not contains_job_keywords(text):
        return False
    sentences = [part for part in _SENTENCE_SPLIT.split(text) if part.strip()]
    return len(sentences) >= 2


def is_job_related_url(url: str) -> bool:
    lowered = url.lower()
    if any(domain in lowered for domain in JOB_BOARD_DOMAINS):
        return True
    if any(segment in lowered for segment in JOB_PATH_SEGMENTS):
        return True
    return any(f"{param}=" in lowered or f"{param}%" in lowered for param in JOB_QUERY_PARAMS)


def detect_jd_input(message: str) -> JDInputDetection:
    trimmed = message.strip()
    if len(trimmed) < 5:
        return JDInputDetection(input_type="unknown", confidence=1.0)

    urls = extract_urls(trimmed)
    remaining = _URL_PATTERN.sub("", trimmed).strip()
    substantial = is_substantial_brief(remaining)

    if urls and substantial:
        return JDInputDetection(input_type="briefWithLink", confidence=0.9, brief=remaining, link=urls[0])
    if urls:
        confidence = 0.9 if is_job_related_url(urls[0]) else 0.7
        return JDInputDetection(input_type="referenceLink", confidence=confidence, link=urls[0])
    if substantial:
        return JDInputDetection(input_type="briefOnly", confidence=0.9, brief=trimmed)
    if contains_job_keywords(remaining):
        return JDInputDetection(input_type="briefOnly", confidence=0.6, brief=trimmed)
    return JDInputDetection(input_type="unknown", confidence=0.8)


def is_detection_reliable(detection: JDInputDetection) -> bool:
    return detection.confidence >= RELIABLE_CONFIDENCE


def describe_detection(detection: JDInputDetection) -> str:
    percent = round(detection.confidence * 100)
    if detection.input_type == "briefWithLink":
        return f"Job brief with organization link detected ({percent}% confidence)"
    if detection.input_type == "briefOnly":
        return f"Job brief detected ({percent}% confidence)"
    if detection.input_type == "referenceLink":
        return f"Reference job posting link detected ({percent}% confidence)"
    return "Input type unclear - please provide a job brief, link, or upload a file"


def follow_up_questions(detection: JDInputDetection) -> list[str]:
    """Questions for details a brief is missing, at most three."""
    if detection.input_type not in ("briefOnly", "briefWithLink"):
        return []

    content = (detection.brief or "").lower()
    questions: list[str] = []

    def missing(*terms: str) -> bool:
        return not any(term in content for term in terms)

    if missing("location", "remote", "hybrid"):
        questions.append("What is the location for this role? (e.g., remote, specific city, hybrid)")
    if missing("contract", "full-time", "part-time"):
        questions.append("What type of contract is this? (e.g., full-time, part-time, consultant)")
    if missing("experience", "years"):
        questions.append("What level of experience is required for this role?")
    if missing("organization", "company") and detection.input_type != "briefWithLink":
        questions.append("What organization is this role for?")
    if missing("salary", "compensation", "pay"):
        questions.append("Is there a salary range for this position? (optional)")
    if missing("deadline", "apply by"):
        questions.append("Is there an application deadline for this role?")

    return questions[:MAX_FOLLOW_UP_QUESTIONS]
