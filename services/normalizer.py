from typing import Mapping, Sequence

from models import Submission

UNKNOWN_TEAM = "Unknown Team"

DEFAULT_FIELD_CANDIDATES: dict[str, list[str]] = {
    "team_name": ["team name", "team_name", "teamname", "team"],
    "email": ["email", "primary contact email", "email address", "email_address", "contact email", "mail"],
    "project_title": ["project title", "project_title", "title", "project name"],
    "drive_link": [
        "ppt link",
        "drive link",
        "ppt_link",
        "google drive link",
        "ppt link (google drive/shareable link)",
        "shareable link",
        "file link",
    ],
    "description": [
        "description",
        "project description",
        "abstract",
        "project description (summary, goals, and key outcomes)",
        "summary",
    ],
    "members": [
        "team members",
        "members",
        "list of team members",
        "list of team members (please list full names, one per line)",
    ],
}


def find_field(row: Mapping[str, str], candidates: Sequence[str]) -> str:
    """
    Return the first non-empty value for `candidates`.

    Exact (case-sensitive) header matches win over everything; only when none of
    the candidates matches exactly do we fall back to headers that contain a
    candidate, case-insensitively. Candidate order is priority order in both tiers.
    """
    for key in candidates:
        value = row.get(key)
        if value is not None and value != "":
            return value

    for key in candidates:
        needle = key.lower()
        for header, value in row.items():
            if needle in header.lower() and value is not None and value != "":
                return value

    return ""


def normalize(
    row: Mapping[str, str],
    field_candidates: Mapping[str, Sequence[str]] | None = None,
    row_index: int | None = None,
) -> Submission:
    candidates = dict(DEFAULT_FIELD_CANDIDATES)
    if field_candidates:
        candidates.update(field_candidates)

    return Submission(
        team_name=find_field(row, candidates["team_name"]).strip() or UNKNOWN_TEAM,
        email=find_field(row, candidates["email"]),
        project_title=find_field(row, candidates["project_title"]),
        drive_link=find_field(row, candidates["drive_link"]),
        description=find_field(row, candidates["description"]),
        members=find_field(row, candidates["members"]),
        row_index=row_index,
    )
