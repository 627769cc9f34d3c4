from __future__ import annotations

import csv
import io
import smtplib
from datetime import date

import pytest

from models import Evaluation, Recommendation, ScoreSet, ShortlistEntry
from services.errors import MailerError
from services.export import CSV_HEADERS, evaluations_to_csv, export_filename
from services.mailer import Mailer, deliver_notices, rejection_email, send_notices, shortlist_email


def _eval(team, score, summary="ok", email=None):
    return Evaluation(
        team_name=team,
        email=email,
        scores=ScoreSet(idea=score, solution_relevance=score, novelty=score, feasibility=score, innovation=score),
        summary=summary,
        recommendation=Recommendation.SHORTLIST,
    )


def test_csv_is_ranked_and_quoted():
    text = evaluations_to_csv([
        _eval("Low", 3),
        _eval('High, "quoted"', 9, summary='Said "wow", twice', email="h@x.com"),
    ])
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[0] == CSV_HEADERS
    assert rows[1][:3] == ["1", 'High, "quoted"', "h@x.com"]
    assert rows[1][8:11] == ["45", "9.0", "SHORTLIST"]
    assert rows[1][11] == 'Said "wow", twice'
    assert rows[2][0] == "2" and rows[2][2] == ""


def test_export_filename():
    assert export_filename(date(2026, 3, 1)) == "jury_results_2026-03-01.csv"


def test_templates_escape_team_name():
    subject, body = shortlist_email("<Nova>", "TechHack 2026", "Tech Club")
    assert "shortlisted for TechHack 2026" in subject
    assert "&lt;Nova&gt;" in body and "<Nova>" not in body

    subject, body = rejection_email("Orbit", "TechHack 2026", "Tech Club")
    assert subject == "Thank you for participating in TechHack 2026"
    assert "Dear Team Orbit" in body


class FakeMailer:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.sent = []

    def send(self, to, subject, html_body):
        if to in self.fail_for:
            return False
        self.sent.append((to, subject))
        return True


def test_send_notices_collects_errors_per_team():
    mailer = FakeMailer(fail_for={"bad@x.com"})
    teams = [
        ShortlistEntry(team_name="A", email="a@x.com", score=9.0),
        ShortlistEntry(team_name="B", email="no-at-sign", score=8.0),
        ShortlistEntry(team_name="C", email="bad@x.com", score=7.0),
        ShortlistEntry(team_name="D", email="d@x.com", score=6.0),
    ]
    report = send_notices(mailer, teams, shortlist_email, "TechHack", "Club")
    assert report.total_sent == 2
    assert [r.team_name for r in report.results] == ["A", "D"]
    assert [(e.team_name, e.error) for e in report.errors] == [
        ("B", 'Invalid email address: "no-at-sign"'),
        ("C", "send failed"),
    ]
    assert [to for to, _ in mailer.sent] == ["a@x.com", "d@x.com"]


def test_mailer_send_reports_smtp_failure(monkeypatch):
    class BrokenSMTP:
        def __init__(self, *args, **kwargs):
            raise smtplib.SMTPConnectError(421, b"unavailable")

    monkeypatch.setattr(smtplib, "SMTP_SSL", BrokenSMTP)
    mailer = Mailer("smtp.example.com", 465, "jury@example.com", "abcd efgh ijkl mnop")
    assert mailer.password == "abcdefghijklmnop"
    assert mailer.send("team@example.com", "hi", "<p>hi</p>") is False


def test_mailer_send_success(monkeypatch):
    sent = []

    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            self.host = host

        def login(self, user, password):
            pass

        def send_message(self, msg):
            sent.append(msg)

        def quit(self):
            pass

    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTP)
    mailer = Mailer("smtp.example.com", 465, "jury@example.com", "pw", sender_name="TechHack Jury")
    assert mailer.send("team@example.com", "Subject", "<p>body</p>") is True
    assert sent[0]["To"] == "team@example.com"
    assert sent[0]["From"] == "TechHack Jury <jury@example.com>"


class CountingSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.logins = 0
        self.sent = []
        self.quits = 0
        CountingSMTP.instances.append(self)

    def login(self, user, password):
        self.logins += 1

    def send_message(self, msg):
        self.sent.append(msg["To"])

    def quit(self):
        self.quits += 1


def test_deliver_notices_logs_in_once(monkeypatch):
    CountingSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP_SSL", CountingSMTP)
    mailer = Mailer("smtp.example.com", 465, "jury@example.com", "pw")
    teams = [ShortlistEntry(team_name=n, email=f"{n}@x.com", score=8.0) for n in ("a", "b", "c")]

    report = deliver_notices(mailer, teams, shortlist_email, "TechHack", "Club")

    assert report.total_sent == 3
    assert len(CountingSMTP.instances) == 1
    server = CountingSMTP.instances[0]
    assert server.logins == 1 and server.quits == 1
    assert server.sent == ["a@x.com", "b@x.com", "c@x.com"]
    # the session is released after the run
    assert mailer._server is None


def test_deliver_notices_login_failure_raises(monkeypatch):
    class RejectingSMTP(CountingSMTP):
        def login(self, user, password):
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

    monkeypatch.setattr(smtplib, "SMTP_SSL", RejectingSMTP)
    mailer = Mailer("smtp.example.com", 465, "jury@example.com", "pw")
    teams = [ShortlistEntry(team_name="a", email="a@x.com", score=8.0)]
    with pytest.raises(MailerError, match="authentication failed"):
        deliver_notices(mailer, teams, shortlist_email, "TechHack", "Club")


def test_deliver_notices_requires_credentials():
    mailer = Mailer("smtp.example.com", 465, "", "")
    with pytest.raises(MailerError, match="not configured"):
        deliver_notices(mailer, [], rejection_email, "TechHack", "Club")
