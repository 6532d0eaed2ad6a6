from telegram import InlineKeyboardButton as B, InlineKeyboardMarkup as M

from telebot_pro.core.jobs import ERROR, PAUSED, RUNNING, STOPPED


def kb(rows):        return M(rows)
def b(text, cb):     return B(text, callback_data=cb)


def main_menu_keyboard():
    return kb([
        [b("⟳ Refresh",        "cmd:home")],
        [b("⚙ Bots",           "cmd:bots"),     b("⚿ Sessions",     "cmd:sessions")],
        [b("⟳ Auto-text jobs", "cmd:jobs"),     b("▤ Terminal",     "cmd:terminal")],
        [b("≡ System status",  "cmd:status"),   b("▤ Audit log",    "cmd:audit")],
        [b("✉ Messages",       "msgs:view")],
    ])


def jobs_keyboard(jobs):
    rows = [[b(f"{j.name[:24]} ({j.status})", f"job:view:{j.id}")] for j in jobs[:20]]
    rows += [
        [b("▶ Start all", "jobs:start_all"), b("❚❚ Pause all", "jobs:pause_all"),
         b("■ Stop all",  "jobs:stop_all")],
        [b("⟳ Refresh",  "cmd:jobs"), b("← Home", "cmd:home")],
    ]
    return kb(rows)


def job_keyboard(job):
    row = []
    if job.status in (PAUSED, STOPPED, ERROR):
        row.append(b("▶ Start", f"job:start:{job.id}"))
    if job.status == RUNNING:
        row.append(b("❚❚ Pause", f"job:pause:{job.id}"))
    if job.status in (RUNNING, PAUSED):
        row.append(b("■ Stop", f"job:stop:{job.id}"))
    return kb([
        row or [b("⟳ Refresh", f"job:view:{job.id}")],
        [b("✕ Delete", f"job:delete:{job.id}")],
        [b("← Jobs",   "cmd:jobs")],
    ])


def bot_keyboard(bot):
    running = bot["status"] == "running"
    return kb([
        [b("■ Stop" if running else "▶ Start",
           f"bot:{'stop' if running else 'start'}:{bot['bot_id']}"),
         b("↺ Restart", f"bot:restart:{bot['bot_id']}")],
        [b("✕ Delete", f"bot:delete:{bot['bot_id']}")],
        [b("← Bots",   "cmd:bots")],
    ])


def bots_keyboard(bots):
    rows = [[b(f"{x['name'][:24]} ({x['status']})", f"bot:view:{x['bot_id']}")] for x in bots[:20]]
    rows.append([b("← Home", "cmd:home")])
    return kb(rows)


def sessions_keyboard(sessions):
    rows = [[b(f"✕ Disconnect {s['session_id']}", f"sess:disconnect:{s['session_id']}")]
            for s in sessions[:20]]
    rows.append([b("← Home", "cmd:home")])
    return kb(rows)


def confirm_keyboard(yes_cb, danger=False):
    return kb([[
        b("‼ YES ‼" if danger else "Yes", yes_cb),
        b("✕ Cancel", "cancel"),
    ]])


def back_home():
    return kb([[b("← Home", "cmd:home")]])


def messages_keyboard(session_id=None):
    suffix = f":{session_id}" if session_id else ""
    return kb([
        [b("✕ Clear",   f"msgs:clear{suffix}"), b("⟳ Refresh", f"msgs:view{suffix}")],
        [b("← Home",    "cmd:home")],
    ])
