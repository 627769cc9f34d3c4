import asyncio
import logging

from aiogram import F, Router
from aiogram.enums import ChatAction
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import (
    BufferedInputFile,
    CallbackQuery,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    Message,
)

from bot.states import AddSubmissionStates, AnalyzeStates
from config import settings
from models import Evaluation, ShortlistEntry, Submission, SubmissionStatus
from services.errors import JuryError
from services.export import evaluations_to_csv, export_filename
from services.jury import JuryService
from services.mailer import Mailer, check_email, deliver_notices, rejection_email, shortlist_email
from services.sheets import fetch_rows

logger = logging.getLogger(__name__)

router = Router()

_TG_LIMIT = 4000
_SKIP_WORDS = {"-", "skip", "none", "n/a"}

HELP_TEXT = (
    "AI Jury Bot\n"
    "\n"
    "/fetch [gid] — load submissions from Google Sheets\n"
    "/add — add a submission manually\n"
    "/submissions — list loaded submissions\n"
    "/delete <n> — delete submission #n\n"
    "/analyze — score one submission (team name + content or link)\n"
    "/evaluate_all — score every loaded submission\n"
    "/top [n] — leaderboard (all by default)\n"
    "/export — leaderboard as CSV\n"
    "/shortlist [n] — pick top N and send notices\n"
    "/clear — drop all evaluations\n"
    "/emailtest [address] — check SMTP settings\n"
    "/config — current configuration\n"
    "/cancel — stop the current dialog"
)


def _is_admin(user_id: int | None) -> bool:
    return bool(user_id and user_id == settings.admin_user_id)


def _norm(text: str | None) -> str:
    return (text or "").strip()


def _optional(text: str | None) -> str:
    t = _norm(text)
    return "" if t.lower() in _SKIP_WORDS else t


def _is_valid_http_url(text: str) -> bool:
    t = text.strip()
    return t.startswith("http://") or t.startswith("https://")


def _chunks(text: str, limit: int = _TG_LIMIT) -> list[str]:
    # split on line boundaries so a card never breaks mid-line
    out: list[str] = []
    cur = ""
    for line in text.split("\n"):
        if cur and len(cur) + len(line) + 1 > limit:
            out.append(cur)
            cur = line
        else:
            cur = f"{cur}\n{line}" if cur else line
    if cur:
        out.append(cur)
    return out


async def _answer_long(message: Message, text: str, reply_markup=None) -> None:
    parts = _chunks(text)
    for i, part in enumerate(parts):
        last = i == len(parts) - 1
        await message.answer(part, parse_mode=None, reply_markup=reply_markup if last else None)


def _score_badge(score: float) -> str:
    if score >= 7:
        return "🟢"
    if score >= 5:
        return "🟡"
    return "🔴"


def _evaluation_card(e: Evaluation) -> str:
    s = e.scores
    lines = [
        f"{_score_badge(e.normalized_score)} {e.team_name} — {e.normalized_score}/10 ({e.total_score}/50)",
        f"Recommendation: {e.recommendation.value}",
        "",
        f"💡 Idea: {s.idea}",
        f"🎯 Solution relevance: {s.solution_relevance}",
        f"✨ Novelty: {s.novelty}",
        f"⚙️ Feasibility: {s.feasibility}",
        f"🚀 Innovation: {s.innovation}",
    ]
    if e.strengths:
        lines += ["", "Strengths:"] + [f"• {x}" for x in e.strengths]
    if e.weaknesses:
        lines += ["", "Weaknesses:"] + [f"• {x}" for x in e.weaknesses]
    if e.summary:
        lines += ["", e.summary]
    return "\n".join(lines)


def _leaderboard(evaluations: list[Evaluation]) -> str:
    lines = [f"🏆 Leaderboard ({len(evaluations)})"]
    for i, e in enumerate(evaluations, start=1):
        s = e.scores
        lines.append(
            f"{i}) {e.team_name} — {e.normalized_score}/10 · {e.recommendation.value} · "
            f"💡{s.idea} 🎯{s.solution_relevance} ✨{s.novelty} ⚙️{s.feasibility} 🚀{s.innovation}"
        )
    return "\n".join(lines)


def _submission_line(i: int, s: Submission) -> str:
    mark = "✅" if s.status == SubmissionStatus.EVALUATED else "⏳"
    title = f" — {s.project_title}" if s.project_title else ""
    email = s.email or "no email"
    return f"{i}) {mark} {s.team_name}{title} ({email})"


def _parse_count(command: CommandObject, default: int | None) -> int | None:
    arg = _norm(command.args)
    if not arg or arg.lower() == "all":
        return default
    n = int(arg)
    if n < 0:
        raise ValueError("count must be >= 0")
    return n


def _shortlist_kb(entries: list[ShortlistEntry]) -> InlineKeyboardMarkup:
    rows = [
        [InlineKeyboardButton(
            text=f"{'☑️' if t.selected else '⬜️'} {t.team_name} — {t.score}/10",
            callback_data=f"sl:toggle:{i}",
        )]
        for i, t in enumerate(entries)
    ]
    rows.append([InlineKeyboardButton(text="📧 Send shortlist mail", callback_data="sl:send")])
    rows.append([InlineKeyboardButton(text="✉️ Send rejection mail", callback_data="sl:reject")])
    return InlineKeyboardMarkup(inline_keyboard=rows)


async def _load_shortlist(state: FSMContext) -> list[ShortlistEntry]:
    data = await state.get_data()
    return [ShortlistEntry.model_validate(x) for x in data.get("shortlist", [])]


async def _save_shortlist(state: FSMContext, entries: list[ShortlistEntry]) -> None:
    await state.update_data(shortlist=[x.model_dump() for x in entries])


async def _deny(message: Message) -> None:
    await message.answer("⛔️ This command is available to the jury admin only.", parse_mode=None)


@router.message(Command("start", "help"))
async def start_handler(message: Message, state: FSMContext) -> None:
    await state.set_state(None)
    if not _is_admin(message.from_user.id if message.from_user else None):
        await _deny(message)
        return
    await message.answer(HELP_TEXT, parse_mode=None)


@router.message(Command("cancel"))
async def cancel_handler(message: Message, state: FSMContext) -> None:
    await state.set_state(None)
    await message.answer("Ok, stopped.", parse_mode=None)


@router.message(Command("config"))
async def config_handler(message: Message, jury: JuryService) -> None:
    if not _is_admin(message.from_user.id if message.from_user else None):
        await _deny(message)
        return
    backends = [b.name for b in jury.backends if b.configured]
    text = (
        f"Hackathon: {settings.hackathon_name}\n"
        f"Theme: {jury.theme}\n"
        f"Organizer: {settings.organizer_name}\n"
        f"Scoring backends: {', '.join(backends) if backends else 'none'}\n"
        f"Google Sheets: {'yes' if settings.sheets_configured else 'no'}\n"
        f"Email: {'yes' if settings.email_configured else 'no'}\n"
        f"Submissions loaded: {len(jury.submissions)}\n"
        f"Evaluations stored: {len(jury.store)}"
    )
    await message.answer(text, parse_mode=None)


@router.message(Command("fetch"))
async def fetch_handler(message: Message, command: CommandObject, jury: JuryService) -> None:
    if not _is_admin(message.from_user.id if message.from_user else None):
        await _deny(message)
        return
    gid = _norm(command.args) or None
    try:
        sheet = await asyncio.to_thread(fetch_rows, gid)
    except Exception as e:
        logger.exception("Sheet fetch failed")
        await message.answer(f"⚠️ Could not read Google Sheet: {str(e)[:300]}", parse_mode=None)
        return
    if not sheet.rows:
        await message.answer("No submissions found.", parse_mode=None)
        return
    loaded = jury.load_rows(sheet.rows)
    await message.answer(
        f"📥 Loaded {len(loaded)} submissions from \"{sheet.sheet_name}\" "
        f"({sheet.total_sheets} tab(s) in the spreadsheet).\nUse /submissions to review them.",
        parse_mode=None,
    )


@router.message(Command("submissions"))
async def submissions_handler(message: Message, jury: JuryService) -> None:
    if not _is_admin(message.from_user.id if message.from_user else None):
        await _deny(message)
        return
    subs = jury.submissions
    if not subs:
        await message.answer("No submissions loaded yet. Use /fetch or /add.", parse_mode=None)
        return
    done = sum(1 for s in subs if s.status == SubmissionStatus.EVALUATED)
    lines = [f"📋 Submissions: {len(subs)} (evaluated {done})"]
    lines += [_submission_line(i, s) for i, s in enumerate(subs, start=1)]
    await _answer_long(message, "\n".join(lines))


@router.message(Command("delete"))
async def delete_handler(message: Message, command: CommandObject, jury: JuryService) -> None:
    if not _is_admin(message.from_user.id if message.from_user else None):
        await _deny(message)
        return
    subs = jury.submissions
    try:
        idx = int(_norm(command.args)) - 1
        if idx < 0:
            raise IndexError(idx)
        target = subs[idx]
    except (ValueError, IndexError):
        await message.answer(f"Usage: /delete <n>, where n is 1..{len(subs)}", parse_mode=None)
        return
    try:
        removed = jury.delete_submission(target.id)
    except JuryError as e:
        await message.answer(f"⚠️ {e}", parse_mode=None)
        return
    await message.answer(
        f"🗑 Submission \"{removed.team_name}\" deleted. Remaining: {len(jury.submissions)}",
        parse_mode=None,
    )


# ----- manual submission ------------------------------------------------------


@router.message(Command("add"))
async def add_handler(message: Message, state: FSMContext) -> None:
    if not _is_admin(message.from_user.id if message.from_user else None):
        await _deny(message)
        return
    await state.set_state(AddSubmissionStates.team_name)
    await state.update_data(new_submission={})
    await message.answer("Team name?", parse_mode=None)


async def _add_step(message: Message, state: FSMContext, key: str, value: str, next_state, prompt: str) -> None:
    data = await state.get_data()
    draft = data.get("new_submission", {})
    draft[key] = value
    await state.update_data(new_submission=draft)
    await state.set_state(next_state)
    await message.answer(prompt, parse_mode=None)


@router.message(AddSubmissionStates.team_name)
async def add_team_handler(message: Message, state: FSMContext) -> None:
    text = _norm(message.text)
    if not text:
        await message.answer("Team name is required.", parse_mode=None)
        return
    await _add_step(message, state, "team_name", text, AddSubmissionStates.email, "Contact email? (\"-\" to skip)")


@router.message(AddSubmissionStates.email)
async def add_email_handler(message: Message, state: FSMContext) -> None:
    await _add_step(
        message, state, "email", _optional(message.text), AddSubmissionStates.project_title, "Project title?"
    )


@router.message(AddSubmissionStates.project_title)
async def add_title_handler(message: Message, state: FSMContext) -> None:
    text = _norm(message.text)
    if not text:
        await message.answer("Project title is required.", parse_mode=None)
        return
    await _add_step(
        message, state, "project_title", text, AddSubmissionStates.drive_link, "PPT / Drive link? (\"-\" to skip)"
    )


@router.message(AddSubmissionStates.drive_link)
async def add_link_handler(message: Message, state: FSMContext) -> None:
    await _add_step(
        message, state, "drive_link", _optional(message.text), AddSubmissionStates.description,
        "Short project description? (\"-\" to skip)",
    )


@router.message(AddSubmissionStates.description)
async def add_description_handler(message: Message, state: FSMContext, jury: JuryService) -> None:
    data = await state.get_data()
    draft = data.get("new_submission", {})
    draft["description"] = _optional(message.text)
    submission = jury.add_submission(Submission(**draft))
    await state.set_state(None)
    await state.update_data(new_submission={})
    await message.answer(
        f"➕ Added submission for \"{submission.team_name}\". Total: {len(jury.submissions)}",
        parse_mode=None,
    )


# ----- scoring ---------------------------------------------------------------


@router.message(Command("analyze"))
async def analyze_handler(message: Message, state: FSMContext) -> None:
    if not _is_admin(message.from_user.id if message.from_user else None):
        await _deny(message)
        return
    await state.set_state(AnalyzeStates.team_name)
    await message.answer("Team name?", parse_mode=None)


@router.message(AnalyzeStates.team_name)
async def analyze_team_handler(message: Message, state: FSMContext) -> None:
    text = _norm(message.text)
    if not text:
        await message.answer("Team name is required.", parse_mode=None)
        return
    await state.update_data(analyze_team=text)
    await state.set_state(AnalyzeStates.content)
    await message.answer(
        "Paste the presentation text, or send a Google Drive link (http:// or https://).",
        parse_mode=None,
    )


@router.message(AnalyzeStates.content)
async def analyze_content_handler(message: Message, state: FSMContext, jury: JuryService) -> None:
    text = _norm(message.text)
    if not text:
        await message.answer("Need the content or a link.", parse_mode=None)
        return
    data = await state.get_data()
    team_name = data.get("analyze_team", "")
    content, link = ("", text) if _is_valid_http_url(text) and " " not in text else (text, "")

    try:
        await message.bot.send_chat_action(chat_id=message.chat.id, action=ChatAction.TYPING)
    except Exception:
        pass
    progress = await message.answer("⏳ AI is analyzing the submission…", parse_mode=None)

    try:
        evaluation = await jury.evaluate(team_name, content=content, drive_link=link)
    except JuryError as e:
        await progress.edit_text(f"❌ Error: {str(e)[:500]}", parse_mode=None)
        return
    except Exception as e:
        logger.exception("Unexpected scoring failure for %s", team_name)
        await progress.edit_text(f"❌ Unexpected error: {str(e)[:300]}", parse_mode=None)
        return
    finally:
        await state.set_state(None)

    await progress.edit_text(f"✅ Evaluation complete for \"{team_name}\"", parse_mode=None)
    await _answer_long(message, _evaluation_card(evaluation))


@router.message(Command("evaluate_all"))
async def evaluate_all_handler(message: Message, jury: JuryService) -> None:
    if not _is_admin(message.from_user.id if message.from_user else None):
        await _deny(message)
        return
    subs = jury.submissions
    if not subs:
        await message.answer("No submissions to evaluate. Load submissions first.", parse_mode=None)
        return

    await message.answer(f"⏳ Evaluating {len(subs)} submissions, one by one…", parse_mode=None)
    batch = await jury.evaluate_batch(subs)

    lines = [f"🎉 Completed: {len(batch.results)} scored, {len(batch.errors)} failed"]
    for e in batch.results:
        lines.append(f"✅ {e.team_name} → {e.normalized_score}/10")
    for err in batch.errors:
        lines.append(f"❌ {err.team_name} → {err.error[:200]}")
    await _answer_long(message, "\n".join(lines))


@router.message(Command("top"))
async def top_handler(message: Message, command: CommandObject, jury: JuryService) -> None:
    if not _is_admin(message.from_user.id if message.from_user else None):
        await _deny(message)
        return
    try:
        n = _parse_count(command, None)
    except ValueError:
        await message.answer("Usage: /top [n]", parse_mode=None)
        return
    ranked = jury.top(n)
    if not ranked:
        await message.answer("No evaluations yet.", parse_mode=None)
        return
    await _answer_long(message, _leaderboard(ranked))


@router.message(Command("export"))
async def export_handler(message: Message, jury: JuryService) -> None:
    if not _is_admin(message.from_user.id if message.from_user else None):
        await _deny(message)
        return
    evaluations = jury.evaluations()
    if not evaluations:
        await message.answer("No results to export.", parse_mode=None)
        return
    data = evaluations_to_csv(evaluations).encode("utf-8")
    await message.answer_document(
        BufferedInputFile(data, filename=export_filename()),
        caption=f"Results: {len(evaluations)} teams",
    )


@router.message(Command("clear"))
async def clear_handler(message: Message, state: FSMContext, jury: JuryService) -> None:
    if not _is_admin(message.from_user.id if message.from_user else None):
        await _deny(message)
        return
    jury.clear()
    await state.update_data(shortlist=[])
    await message.answer("🧹 All evaluations cleared.", parse_mode=None)


# ----- shortlist & mail ------------------------------------------------------


@router.message(Command("shortlist"))
async def shortlist_handler(message: Message, command: CommandObject, state: FSMContext, jury: JuryService) -> None:
    if not _is_admin(message.from_user.id if message.from_user else None):
        await _deny(message)
        return
    try:
        n = _parse_count(command, 10)
    except ValueError:
        await message.answer("Usage: /shortlist [n]", parse_mode=None)
        return
    if not len(jury.store):
        await message.answer("No evaluations available. Evaluate submissions first.", parse_mode=None)
        return
    entries = jury.shortlist(n)
    await _save_shortlist(state, entries)
    await message.answer(
        f"🏅 Auto-selected top {len(entries)} teams. Tap a team to toggle it.",
        reply_markup=_shortlist_kb(entries),
        parse_mode=None,
    )


@router.callback_query(F.data.startswith("sl:toggle:"))
async def shortlist_toggle_cb(callback: CallbackQuery, state: FSMContext) -> None:
    if not _is_admin(callback.from_user.id if callback.from_user else None):
        await callback.answer("⛔️ Admin only.", show_alert=True)
        return
    entries = await _load_shortlist(state)
    try:
        idx = int(callback.data.rsplit(":", 1)[1])
        entries[idx].selected = not entries[idx].selected
    except (ValueError, IndexError):
        await callback.answer("Shortlist is outdated, run /shortlist again.", show_alert=True)
        return
    await _save_shortlist(state, entries)
    try:
        await callback.message.edit_reply_markup(reply_markup=_shortlist_kb(entries))
    except Exception:
        pass
    await callback.answer()


async def _send_mail_report(callback: CallbackQuery, teams: list[ShortlistEntry], template, label: str) -> None:
    mailer = Mailer.from_settings(settings)
    try:
        report = await asyncio.to_thread(
            deliver_notices, mailer, teams, template, settings.hackathon_name, settings.organizer_name
        )
    except JuryError as e:
        await callback.message.answer(f"⚠️ {str(e)[:500]}", parse_mode=None)
        return
    lines = [f"📧 {label}: {report.total_sent} sent, {len(report.errors)} failed"]
    for err in report.errors:
        lines.append(f"❌ {err.team_name} <{err.email}>: {err.error}")
    await callback.message.answer("\n".join(lines), parse_mode=None)


@router.callback_query(F.data == "sl:send")
async def shortlist_send_cb(callback: CallbackQuery, state: FSMContext) -> None:
    if not _is_admin(callback.from_user.id if callback.from_user else None):
        await callback.answer("⛔️ Admin only.", show_alert=True)
        return
    selected = [t for t in await _load_shortlist(state) if t.selected and t.email]
    if not selected:
        await callback.answer("No teams with email selected.", show_alert=True)
        return
    await callback.answer(f"Sending to {len(selected)} teams…")
    await _send_mail_report(callback, selected, shortlist_email, "Shortlist mail")


@router.callback_query(F.data == "sl:reject")
async def shortlist_reject_cb(callback: CallbackQuery, state: FSMContext, jury: JuryService) -> None:
    if not _is_admin(callback.from_user.id if callback.from_user else None):
        await callback.answer("⛔️ Admin only.", show_alert=True)
        return
    chosen = [t.team_name for t in await _load_shortlist(state) if t.selected]
    rejected = jury.rejected(chosen)
    if not rejected:
        await callback.answer("No rejected teams with emails to notify.", show_alert=True)
        return
    await callback.answer(f"Sending to {len(rejected)} teams…")
    await _send_mail_report(callback, rejected, rejection_email, "Rejection mail")


@router.message(Command("emailtest"))
async def emailtest_handler(message: Message, command: CommandObject) -> None:
    if not _is_admin(message.from_user.id if message.from_user else None):
        await _deny(message)
        return
    mailer = Mailer.from_settings(settings)
    to = _norm(command.args) or settings.email_user
    try:
        await asyncio.to_thread(mailer.verify)
    except JuryError as e:
        await message.answer(f"📧 ❌ {str(e)[:500]}", parse_mode=None)
        return
    subject, body = check_email(settings.hackathon_name)
    ok = await asyncio.to_thread(mailer.send, to, subject, body)
    if ok:
        await message.answer(f"📧 ✅ Test email sent to {to}", parse_mode=None)
    else:
        await message.answer(f"📧 ❌ Could not send test email to {to}", parse_mode=None)
