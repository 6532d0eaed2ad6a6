# telebot_pro/monitor/system.py
# Host resources shown by the terminal's `status` command

from datetime import datetime
from typing import Any

import psutil


class SystemMonitor:

    @staticmethod
    def get_cpu_usage() -> float:
        return psutil.cpu_percent(interval=0.5)

    @staticmethod
    def get_memory_usage() -> dict[str, float]:
        mem = psutil.virtual_memory()
        return {
            "total": mem.total / (1024 ** 3),
            "used": mem.used / (1024 ** 3),
            "percent": mem.percent,
        }

    @staticmethod
    def get_disk_usage(path: str = "/") -> dict[str, float]:
        disk = psutil.disk_usage(path)
        return {
            "total": disk.total / (1024 ** 3),
            "used": disk.used / (1024 ** 3),
            "free": disk.free / (1024 ** 3),
            "percent": disk.percent,
        }

    @staticmethod
    def get_uptime() -> str:
        delta = datetime.now() - datetime.fromtimestamp(psutil.boot_time())
        days = delta.days
        hours = delta.seconds // 3600
        minutes = (delta.seconds % 3600) // 60
        return f"{days}d {hours}h {minutes}m"

    @staticmethod
    def get_process_count() -> int:
        return len(psutil.pids())

    def snapshot(self) -> dict[str, Any]:
        return {
            "time": datetime.now(),
            "uptime": self.get_uptime(),
            "cpu": max(0.0, self.get_cpu_usage()),
            "cores": psutil.cpu_count(),
            "memory": self.get_memory_usage(),
            "disk": self.get_disk_usage(),
            "processes": self.get_process_count(),
        }
