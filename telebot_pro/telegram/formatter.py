from datetime import datetime

from telegram.helpers import escape_markdown

from telebot_pro.core.jobs import COMPLETED, ERROR, PAUSED, RUNNING, STOPPED

MAX_OUTPUT = 3800

_JOB_ICON = {RUNNING: "▶", PAUSED: "❚❚", STOPPED: "■", COMPLETED: "✓", ERROR: "✕"}
_BOT_ICON = {"running": "●", "stopped": "○"}


def _bar(p, width=8):
    """ASCII progress bar: [████░░░░]"""
    filled = round(p / 100 * width)
    return "[" + "█" * filled + "░" * (width - filled) + "]"


def _code(text):
    return str(text).replace("`", "'")


def _esc(text):
    """Escape free text placed outside an entity."""
    return escape_markdown(str(text), version=1)


def _ts(iso):
    if not iso:
        return "—"
    try:
        return datetime.fromisoformat(iso).strftime("%m-%d %H:%M:%S")
    except ValueError:
        return iso


TERMINAL_HELP = "\n".join([
    "*▤ SECURE TERMINAL*",
    "",
    "*System*: `pwd` `whoami` `date` `uptime` `uname -a` `hostname`",
    "*Files*: `ls -la` `cat package.json` `tail -n 50 app.log` `du -sh .`",
    "*Processes*: `ps aux | head -20`",
    "*Versions*: `node --version` `npm --version` `python --version`",
    "*Network*: `curl -s https://api.ipify.org` `ping -c 1 8.8.8.8`",
    "*Resources*: `free -h` `df -h`",
    "*Git*: `git status` `git log --oneline -10`",
    "",
    "*Built-in*: `clear` `help` `history` `status` `bots` `userbots`",
    "",
    "Dangerous commands and shell chaining are blocked.",
    "Sensitive output is redacted. Every command is audited.",
])


# ── terminal ──────────────────────────────────────────────────────────────────

def format_exec_result(command, result):
    out = result.output or ""
    if len(out) > MAX_OUTPUT:
        out = out[-MAX_OUTPUT:]
    head = f"`$ {_code(command)}`"
    if not result.success and not out:
        return f"{head}\n\n✕ {result.error}"
    tail = f"\n✕ {result.error}" if not result.success else ""
    return f"{head}\n```\n{_code(out)}\n```{tail}"


def format_history(history, limit=30):
    if not history:
        return "No command history"
    start = max(0, len(history) - limit)
    lines = ["*▤ Command history*", ""]
    lines += [f"  {i + 1}. `{_code(c)}`" for i, c in enumerate(history[start:], start)]
    return "\n".join(lines)


def format_audit(entries):
    if not entries:
        return "*▤ Audit log*\n\n_empty_"
    lines = ["*▤ Audit log*", ""]
    for e in entries:
        mark = "✓" if e.get("allowed") and e.get("success") is not False else "✕"
        lines.append(f"{mark} `{_ts(e.get('timestamp'))}` {_esc(e.get('user'))}: `{_code(e.get('command'))}`")
    return "\n".join(lines)


def format_system_status(snap, auth=None):
    mem, dsk, cpu = snap["memory"], snap["disk"], snap["cpu"]
    lines = [
        "*≡ SYSTEM STATUS*",
        f"`{snap['time'].strftime('%Y-%m-%d %H:%M:%S')}`  ⏱ `{snap['uptime']}`",
        "",
        f"CPU  {_bar(cpu)} `{cpu:.1f}%`  cores `{snap['cores']}`",
        f"RAM  {_bar(mem['percent'])} `{mem['percent']:.1f}%`  {mem['used']:.1f}/{mem['total']:.1f} GB",
        f"Disk {_bar(dsk['percent'])} `{dsk['percent']:.1f}%`  {dsk['used']:.1f}/{dsk['total']:.1f} GB",
        f"Processes `{snap['processes']}`",
    ]
    if auth is not None:
        lines += ["", f"Authenticated: {'yes' if auth.get('valid') else 'no'}"]
        if auth.get("expires"):
            lines.append(f"Session expires: `{auth['expires']}`")
    return "\n".join(lines)


# ── jobs ──────────────────────────────────────────────────────────────────────

def format_job(job):
    st = job.stats
    limit = job.sends_required or "∞"
    return "\n".join([
        f"*{_JOB_ICON.get(job.status, '?')}* {_esc(job.name)}  _{job.status}_",
        f"ID: `{job.id}`",
        f"Session: `{job.session_id}`",
        f"Targets: " + ", ".join(f"`{_code(t)}`" for t in job.targets),
        f"Interval: `{job.interval}s`  Repeat: `{job.repeat_limit or '∞'}`",
        "",
        f"Sent: *{st.total_sent}/{limit}*  ✓ {st.successful}  ✕ {st.failed}",
        f"Last run: `{_ts(st.last_run)}`  Next: `{_ts(st.next_run)}`",
    ] + ([f"Last error: `{_code(st.last_error)}`"] if st.last_error else []) + [
        "",
        "Message:",
        f"```\n{_code(job.message)[:500]}\n```",
    ])


def format_jobs(jobs):
    if not jobs:
        return "*⟳ AUTO-TEXT JOBS*\n\nNo jobs. Create one with `/newjob`."
    counts = {}
    for j in jobs:
        counts[j.status] = counts.get(j.status, 0) + 1
    summary = "  ".join(f"{_JOB_ICON[s]} {counts[s]}" for s in _JOB_ICON if s in counts)
    lines = [f"*⟳ AUTO-TEXT JOBS* ({len(jobs)})  {summary}", ""]
    for j in jobs:
        lines.append(
            f"{_JOB_ICON.get(j.status, '?')} `{j.id}` {_esc(j.name[:30])}\n"
            f"     {j.stats.total_sent}/{j.sends_required or '∞'} sent, every {j.interval}s")
    return "\n".join(lines)


# ── sessions / bots ───────────────────────────────────────────────────────────

def format_sessions(sessions):
    if not sessions:
        return "*⚿ USER SESSIONS*\n\nNo sessions. Use `/connect <api_id> <api_hash> <phone>`."
    lines = [f"*⚿ USER SESSIONS* ({len(sessions)})", ""]
    for s in sessions:
        user = s.get("user") or {}
        who  = f"@{user['username']}" if user.get("username") else s["phone"]
        lines.append(
            f"{'●' if s['status'] == 'connected' else '○'} `{s['session_id']}` {_esc(who)}  {_esc(s['status'])}\n"
            f"     sent {s['stats']['messages_sent']}, errors {s['stats']['send_errors']}")
    return "\n".join(lines)


def format_bots(bots):
    if not bots:
        return "*⚙ BOTS*\n\nNo bots configured. Use `/addbot <token> [name]`."
    lines = [f"*⚙ BOTS* ({len(bots)})", ""]
    for b in bots:
        st = b["stats"]
        lines.append(
            f"{_BOT_ICON.get(b['status'], '?')} `{b['bot_id']}` {_esc(b['name'])}  _{b['status']}_\n"
            f"     messages {st['messages_sent']}, commands {st['commands_received']}, "
            f"errors {st['errors']}, uptime {b['uptime']}")
    return "\n".join(lines)


def format_home(jobs, sessions, bots):
    running = sum(1 for j in jobs if j.status == RUNNING)
    online  = sum(1 for s in sessions if s["status"] == "connected")
    active  = sum(1 for b in bots if b["status"] == "running")
    return "\n".join([
        "*≡ TELEBOT PRO*",
        f"`{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}`",
        "",
        f"Bots      `{active}/{len(bots)}` running",
        f"Sessions  `{online}/{len(sessions)}` connected",
        f"Jobs      `{running}/{len(jobs)}` running",
    ])


# ── delivered messages ────────────────────────────────────────────────────────

def format_messages(messages, session_id=None, status=None):
    scope = " ".join(x for x in (session_id, status) if x)
    title = "*✉ MESSAGES*" + (f" `{_code(scope)}`" if scope else "")
    if not messages:
        return f"{title}\n\n_empty_"
    sent   = sum(1 for m in messages if m["status"] == "sent")
    failed = len(messages) - sent
    lines  = [f"{title}  ✓ {sent}  ✕ {failed}", ""]
    for m in messages:
        mark = "✓" if m["status"] == "sent" else "✕"
        lines.append(
            f"{mark} `{_ts(m['timestamp'])}` `{_code(m['target'])}` {_esc(m['type'])}\n"
            f"     {_esc(m['text'][:60])}")
        if m.get("error"):
            lines.append(f"     `{_code(m['error'])}`")
    return "\n".join(lines)


def format_dialogs(dialogs):
    lines = [f"*Dialogs* ({len(dialogs)})", ""]
    lines += [f"  `{d['id']}` {_esc(d['title'])} {_esc(d['type'])}" for d in dialogs] or ["  _none_"]
    return "\n".join(lines)
