import asyncio
import logging

from telegram.ext import CallbackQueryHandler, CommandHandler

from telebot_pro.config import ADMIN_IDS
from telebot_pro.core.errors import TeleBotError
from telebot_pro.telegram.formatter import (
    TERMINAL_HELP, format_audit, format_bots, format_dialogs, format_home,
    format_job, format_jobs, format_messages, format_sessions, format_system_status,
)
from telebot_pro.telegram.keyboards import (
    back_home, bot_keyboard, bots_keyboard, confirm_keyboard, job_keyboard,
    jobs_keyboard, main_menu_keyboard, messages_keyboard, sessions_keyboard,
)

logger = logging.getLogger(__name__)

NEWJOB_USAGE = (
    "Usage: `/newjob <session_id> <interval> <repeat|0> <target1,target2> <message>`\n\n"
    "Example: `/newjob sess_ab12 60 5 @channel,-100123456 Hello there`\n"
    "Interval in seconds (min 10). Repeat 0 = unlimited."
)


def _admin(uid): return not ADMIN_IDS or uid in ADMIN_IDS
def _g(ctx, k):  return ctx.bot_data[k]


def _auth_info(context):
    check = _g(context, "auth").verify(context.user_data.get("token"))
    info  = {"valid": check.valid}
    if check.valid:
        info["expires"] = context.user_data.get("expires", "")
    return info


def _allowed(update, context):
    if not _admin(update.effective_user.id):
        return False
    return _g(context, "auth").verify(context.user_data.get("token")).valid


async def _no_access(update):
    m = update.message or (update.callback_query.message if update.callback_query else None)
    if m: await m.reply_text("No access. Log in with `/login <user> <password>`", parse_mode="Markdown")


async def _home(update, context):
    text = format_home(
        _g(context, "scheduler").list_jobs(),
        _g(context, "sessions").list_sessions(),
        _g(context, "bots").list_bots(),
    )
    kb = main_menu_keyboard()
    if update.callback_query:
        try:
            await update.callback_query.edit_message_text(text, parse_mode="Markdown", reply_markup=kb)
            return
        except Exception:
            pass
    await context.bot.send_message(update.effective_chat.id, text, parse_mode="Markdown", reply_markup=kb)


def _split(update, n):
    """Split the raw message into the command and at most ``n`` arguments."""
    parts = (update.message.text or "").split(maxsplit=n)
    return parts[1:]


# ── Auth ──────────────────────────────────────────────────────────────────────

async def cmd_start(update, context):
    if not _allowed(update, context): await _no_access(update); return
    await _home(update, context)


async def cmd_login(update, context):
    if not _admin(update.effective_user.id): await update.message.reply_text("No access."); return
    try:
        await update.message.delete()
    except Exception:
        pass
    if len(context.args) < 2:
        await context.bot.send_message(
            update.effective_chat.id, "Usage: `/login <user> <password>`", parse_mode="Markdown"); return
    try:
        tok = _g(context, "auth").authenticate(context.args[0], " ".join(context.args[1:]))
    except TeleBotError as e:
        await context.bot.send_message(update.effective_chat.id, f"✕ {e}"); return
    context.user_data["token"]   = tok.token
    context.user_data["expires"] = tok.expires_at.strftime("%Y-%m-%d %H:%M UTC")
    await context.bot.send_message(
        update.effective_chat.id,
        f"✓ Login successful. Session expires `{context.user_data['expires']}`",
        parse_mode="Markdown", reply_markup=main_menu_keyboard())


async def cmd_logout(update, context):
    token = context.user_data.pop("token", None)
    context.user_data.pop("expires", None)
    if token:
        _g(context, "auth").revoke(token)
    await update.message.reply_text("Logged out.")


# ── Terminal ──────────────────────────────────────────────────────────────────

async def cmd_sh(update, context):
    if not _allowed(update, context): await _no_access(update); return
    args = _split(update, 1)
    user = update.effective_user.username or str(update.effective_user.id)
    text = await _g(context, "terminal").run(args[0] if args else "", user, _auth_info(context))
    await update.message.reply_text(text, parse_mode="Markdown")


async def cmd_history(update, context):
    if not _allowed(update, context): await _no_access(update); return
    text = await _g(context, "terminal").run("history")
    await update.message.reply_text(text, parse_mode="Markdown", reply_markup=back_home())


async def cmd_audit(update, context):
    if not _allowed(update, context): await _no_access(update); return
    await update.message.reply_text(
        format_audit(_g(context, "store").get_audit_log(20)),
        parse_mode="Markdown", reply_markup=back_home())


async def cmd_status(update, context):
    if not _allowed(update, context): await _no_access(update); return
    snap = await asyncio.to_thread(_g(context, "monitor").snapshot)
    await update.message.reply_text(
        format_system_status(snap, _auth_info(context)),
        parse_mode="Markdown", reply_markup=back_home())


# ── User sessions ─────────────────────────────────────────────────────────────

async def cmd_connect(update, context):
    if not _allowed(update, context): await _no_access(update); return
    try:
        await update.message.delete()
    except Exception:
        pass
    chat = update.effective_chat.id
    if len(context.args) not in (1, 3):
        await context.bot.send_message(
            chat, "Usage: `/connect <api_id> <api_hash> <phone>` or `/connect <phone>`",
            parse_mode="Markdown"); return
    if len(context.args) == 3:
        api_id, api_hash, phone = context.args
    else:
        api_id, api_hash, phone = None, None, context.args[0]
    try:
        sid = await _g(context, "sessions").connect(phone, api_id, api_hash)
    except TeleBotError as e:
        await context.bot.send_message(chat, f"✕ {e}"); return
    status = _g(context, "sessions").get_status(sid)["status"]
    if status == "connected":
        await context.bot.send_message(chat, f"✓ Session `{sid}` connected", parse_mode="Markdown")
    else:
        await context.bot.send_message(
            chat, f"Code sent. Confirm with `/verify {sid} <code> [password]`", parse_mode="Markdown")


async def cmd_verify(update, context):
    if not _allowed(update, context): await _no_access(update); return
    try:
        await update.message.delete()
    except Exception:
        pass
    chat = update.effective_chat.id
    if len(context.args) < 2:
        await context.bot.send_message(
            chat, "Usage: `/verify <session_id> <code> [password]`", parse_mode="Markdown"); return
    sid, code = context.args[0], context.args[1]
    password  = context.args[2] if len(context.args) > 2 else None
    try:
        user = await _g(context, "sessions").verify(sid, code, password)
    except TeleBotError as e:
        await context.bot.send_message(chat, f"✕ {e}"); return
    who = f"@{user['username']}" if user.get("username") else user.get("phone")
    await context.bot.send_message(chat, f"✓ Session {sid} connected as {who}")


async def cmd_sessions(update, context):
    if not _allowed(update, context): await _no_access(update); return
    sessions = _g(context, "sessions").list_sessions()
    await update.message.reply_text(
        format_sessions(sessions), parse_mode="Markdown", reply_markup=sessions_keyboard(sessions))


async def cmd_disconnect(update, context):
    if not _allowed(update, context): await _no_access(update); return
    if not context.args:
        await update.message.reply_text("Usage: `/disconnect <session_id>`", parse_mode="Markdown"); return
    try:
        await _g(context, "sessions").disconnect(context.args[0])
    except TeleBotError as e:
        await update.message.reply_text(f"✕ {e}"); return
    await update.message.reply_text(f"✓ Session `{context.args[0]}` disconnected", parse_mode="Markdown")


async def cmd_send(update, context):
    if not _allowed(update, context): await _no_access(update); return
    args = _split(update, 3)
    if len(args) < 3:
        await update.message.reply_text("Usage: `/send <session_id> <target> <text>`", parse_mode="Markdown"); return
    sid, target, text = args
    r = await _g(context, "sessions").send(sid, target, text)
    _g(context, "store").log_message(sid, target, text, r.success, r.error)
    await update.message.reply_text("✓ Sent" if r.success else f"✕ {r.error}")


async def cmd_dialogs(update, context):
    if not _allowed(update, context): await _no_access(update); return
    if not context.args:
        await update.message.reply_text("Usage: `/dialogs <session_id>`", parse_mode="Markdown"); return
    try:
        dialogs = await _g(context, "sessions").get_dialogs(context.args[0], limit=30)
    except TeleBotError as e:
        await update.message.reply_text(f"✕ {e}"); return
    await update.message.reply_text(format_dialogs(dialogs), parse_mode="Markdown")


# ── Delivered messages ────────────────────────────────────────────────────────

async def cmd_messages(update, context):
    """/messages [session_id] [sent|failed]"""
    if not _allowed(update, context): await _no_access(update); return
    sid = status = None
    for arg in context.args:
        if arg in ("sent", "failed"):
            status = arg
        else:
            sid = arg
    msgs = _g(context, "store").get_messages(session_id=sid, status=status, limit=20)
    await update.message.reply_text(
        format_messages(msgs, sid, status), parse_mode="Markdown", reply_markup=messages_keyboard(sid))


# ── Auto-text jobs ────────────────────────────────────────────────────────────

async def cmd_newjob(update, context):
    if not _allowed(update, context): await _no_access(update); return
    args = _split(update, 5)
    if len(args) < 5:
        await update.message.reply_text(NEWJOB_USAGE, parse_mode="Markdown"); return
    sid, interval, repeat, targets, message = args
    try:
        job = _g(context, "scheduler").create_job(
            sid, targets, message, interval, repeat_limit=repeat, start_now=True)
    except TeleBotError as e:
        await update.message.reply_text(f"✕ {e}"); return
    await update.message.reply_text(
        "✓ Auto-text job created!\n\n" + format_job(job),
        parse_mode="Markdown", reply_markup=job_keyboard(job))


async def cmd_jobs(update, context):
    if not _allowed(update, context): await _no_access(update); return
    jobs = _g(context, "scheduler").list_jobs()
    await update.message.reply_text(format_jobs(jobs), parse_mode="Markdown", reply_markup=jobs_keyboard(jobs))


async def cmd_job(update, context):
    if not _allowed(update, context): await _no_access(update); return
    if not context.args:
        await update.message.reply_text("Usage: `/job <job_id>`", parse_mode="Markdown"); return
    try:
        job = _g(context, "scheduler").get_job(context.args[0])
    except TeleBotError as e:
        await update.message.reply_text(f"✕ {e}"); return
    await update.message.reply_text(format_job(job), parse_mode="Markdown", reply_markup=job_keyboard(job))


async def _bulk(update, context, action, verb):
    if not _allowed(update, context): await _no_access(update); return
    n = getattr(_g(context, "scheduler"), action)()
    await update.message.reply_text(f"{verb} {n} job(s)")


async def cmd_jobs_start_all(u, c): await _bulk(u, c, "start_all", "Started")
async def cmd_jobs_pause_all(u, c): await _bulk(u, c, "pause_all", "Paused")
async def cmd_jobs_stop_all(u, c):  await _bulk(u, c, "stop_all",  "Stopped")


# ── Managed bots ──────────────────────────────────────────────────────────────

async def cmd_addbot(update, context):
    if not _allowed(update, context): await _no_access(update); return
    try:
        await update.message.delete()
    except Exception:
        pass
    chat = update.effective_chat.id
    if not context.args:
        await context.bot.send_message(chat, "Usage: `/addbot <token> [name]`", parse_mode="Markdown"); return
    name  = " ".join(context.args[1:]) or None
    owner = update.effective_user.username or str(update.effective_user.id)
    try:
        bot = _g(context, "bots").create(context.args[0], name, owner)
    except TeleBotError as e:
        await context.bot.send_message(chat, f"✕ {e}"); return
    info = bot.info()
    await context.bot.send_message(
        chat, f"✓ Bot `{info['bot_id']}` registered", parse_mode="Markdown", reply_markup=bot_keyboard(info))


async def cmd_bots(update, context):
    if not _allowed(update, context): await _no_access(update); return
    bots = _g(context, "bots").list_bots()
    await update.message.reply_text(format_bots(bots), parse_mode="Markdown", reply_markup=bots_keyboard(bots))


async def cmd_botsend(update, context):
    if not _allowed(update, context): await _no_access(update); return
    args = _split(update, 3)
    if len(args) < 3:
        await update.message.reply_text("Usage: `/botsend <bot_id> <chat_id> <text>`", parse_mode="Markdown"); return
    try:
        await _g(context, "bots").send(*args)
    except TeleBotError as e:
        await update.message.reply_text(f"✕ {e}"); return
    await update.message.reply_text("✓ Message sent")


async def cmd_help(update, context):
    await update.message.reply_text("\n".join([
        "*≡ TELEBOT PRO*",
        "",
        "`/login <user> <password>` `/logout`",
        "`/sh <command>` `/history` `/audit` `/status`",
        "`/connect <api_id> <api_hash> <phone>` `/verify <sid> <code> [password]`",
        "`/sessions` `/dialogs <sid>` `/send <sid> <target> <text>` `/disconnect <sid>`",
        "`/messages [sid] [sent|failed]`",
        "`/newjob ...` `/jobs` `/job <id>`",
        "`/jobs_start_all` `/jobs_pause_all` `/jobs_stop_all`",
        "`/addbot <token> [name]` `/bots` `/botsend <bot_id> <chat_id> <text>`",
    ]), parse_mode="Markdown")


# ── Callbacks ─────────────────────────────────────────────────────────────────

async def handle_callbacks(update, context):
    q = update.callback_query
    await q.answer()
    if not _allowed(update, context): await _no_access(update); return
    d   = q.data
    sch = _g(context, "scheduler")
    bts = _g(context, "bots")
    ses = _g(context, "sessions")

    async def edit(text, kb_=None, md=True):
        try:
            await q.edit_message_text(
                text, parse_mode="Markdown" if md else None, reply_markup=kb_)
        except Exception:
            pass

    async def show_job(job_id):
        job = sch.get_job(job_id)
        await edit(format_job(job), job_keyboard(job))

    async def show_bot(bot_id):
        info = bts.get_stats(bot_id)
        await edit(format_bots([info]), bot_keyboard(info))

    try:
        if d == "cancel":        await edit("Cancelled", md=False); return
        if d == "cmd:home":      await _home(update, context);       return
        if d == "cmd:terminal":  await edit(TERMINAL_HELP, back_home()); return
        if d == "cmd:status":
            snap = await asyncio.to_thread(_g(context, "monitor").snapshot)
            await edit(format_system_status(snap, _auth_info(context)), back_home()); return
        if d == "cmd:audit":
            await edit(format_audit(_g(context, "store").get_audit_log(20)), back_home()); return

        if d == "cmd:jobs":
            jobs = sch.list_jobs()
            await edit(format_jobs(jobs), jobs_keyboard(jobs)); return
        if d.startswith("jobs:"):
            bulk = {"start_all": sch.start_all, "pause_all": sch.pause_all, "stop_all": sch.stop_all}
            n = bulk[d.split(":", 1)[1]]()
            jobs = sch.list_jobs()
            await edit(f"✓ {n} job(s) updated\n\n" + format_jobs(jobs), jobs_keyboard(jobs)); return
        if d.startswith("job:"):
            _, action, job_id = d.split(":", 2)
            if action == "view":
                await show_job(job_id); return
            if action == "delete":
                await edit(f"Delete job `{job_id}`?", confirm_keyboard(f"job:delete_yes:{job_id}", danger=True)); return
            if action == "delete_yes":
                sch.delete_job(job_id)
                jobs = sch.list_jobs()
                await edit("✓ Job deleted\n\n" + format_jobs(jobs), jobs_keyboard(jobs)); return
            {"start": sch.start_job, "pause": sch.pause_job, "stop": sch.stop_job}[action](job_id)
            await show_job(job_id); return

        if d == "cmd:bots":
            bots = bts.list_bots()
            await edit(format_bots(bots), bots_keyboard(bots)); return
        if d.startswith("bot:"):
            _, action, bot_id = d.split(":", 2)
            if action == "view":
                await show_bot(bot_id); return
            if action == "delete":
                await edit(f"Delete bot `{bot_id}`?", confirm_keyboard(f"bot:delete_yes:{bot_id}", danger=True)); return
            if action == "delete_yes":
                await bts.delete(bot_id)
                bots = bts.list_bots()
                await edit("✓ Bot deleted\n\n" + format_bots(bots), bots_keyboard(bots)); return
            await {"start": bts.start, "stop": bts.stop, "restart": bts.restart}[action](bot_id)
            await show_bot(bot_id); return

        if d.startswith("msgs:"):
            parts  = d.split(":", 2)
            action = parts[1]
            sid    = parts[2] if len(parts) > 2 else None
            store  = _g(context, "store")
            if action == "clear":
                suffix = f":{sid}" if sid else ""
                await edit("Clear " + (f"messages of `{sid}`" if sid else "all messages") + "?",
                           confirm_keyboard(f"msgs:clear_yes{suffix}", danger=True)); return
            if action == "clear_yes":
                n = store.clear_messages(sid)
                await edit(f"✓ {n} message(s) cleared", messages_keyboard(sid)); return
            await edit(format_messages(store.get_messages(session_id=sid, limit=20), sid),
                       messages_keyboard(sid)); return

        if d == "cmd:sessions":
            sessions = ses.list_sessions()
            await edit(format_sessions(sessions), sessions_keyboard(sessions)); return
        if d.startswith("sess:disconnect:"):
            sid = d.split(":", 2)[2]
            await edit(f"Disconnect `{sid}`?\n\nJobs using it will fail on their next run.",
                       confirm_keyboard(f"sess:disconnect_yes:{sid}", danger=True)); return
        if d.startswith("sess:disconnect_yes:"):
            await ses.disconnect(d.split(":", 2)[2])
            sessions = ses.list_sessions()
            await edit("✓ Disconnected\n\n" + format_sessions(sessions), sessions_keyboard(sessions)); return
    except TeleBotError as e:
        await edit(f"✕ {e}", back_home(), md=False)
    except KeyError:
        logger.warning("Unknown callback: %s", d)


# ── Lifecycle ─────────────────────────────────────────────────────────────────

async def on_startup(app):
    n = app.bot_data["scheduler"].load()
    if n:
        logger.info("%d job(s) restored paused; start them with /jobs_start_all", n)


async def on_shutdown(app):
    app.bot_data["scheduler"].shutdown()
    await app.bot_data["bots"].stop_all()
    await app.bot_data["sessions"].disconnect_all()


async def on_error(update, context):
    logger.error("Update %s caused error", update, exc_info=context.error)


# ── Register ──────────────────────────────────────────────────────────────────

def register_handlers(app):
    for name, fn in [
        ("start",           cmd_start),
        ("menu",            cmd_start),
        ("help",            cmd_help),
        ("login",           cmd_login),
        ("logout",          cmd_logout),
        ("sh",              cmd_sh),
        ("history",         cmd_history),
        ("audit",           cmd_audit),
        ("status",          cmd_status),
        ("connect",         cmd_connect),
        ("verify",          cmd_verify),
        ("sessions",        cmd_sessions),
        ("disconnect",      cmd_disconnect),
        ("send",            cmd_send),
        ("dialogs",         cmd_dialogs),
        ("messages",        cmd_messages),
        ("newjob",          cmd_newjob),
        ("jobs",            cmd_jobs),
        ("job",             cmd_job),
        ("jobs_start_all",  cmd_jobs_start_all),
        ("jobs_pause_all",  cmd_jobs_pause_all),
        ("jobs_stop_all",   cmd_jobs_stop_all),
        ("addbot",          cmd_addbot),
        ("bots",            cmd_bots),
        ("botsend",         cmd_botsend),
    ]:
        app.add_handler(CommandHandler(name, fn))
    app.add_handler(CallbackQueryHandler(handle_callbacks))
    app.add_error_handler(on_error)
