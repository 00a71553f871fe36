import json
import os
import datetime
import threading
from typing import Dict, Any, List, Optional

from utils.logger import get_logger
logger = get_logger("error_manager")


class ErrorManager:
    """
    Centralized manager for recording and retrieving stage/API errors.

    Entries are kept in a rolling JSON file so a failed bulk run can be
    inspected after the fact.
    """

    LOG_FILE = os.path.join(os.getenv("SCRIPTCUT_OUTPUT_DIR", "outputs"), "api_errors.log")
    MAX_ENTRIES = 100
    _lock = threading.Lock()

    @classmethod
    def configure(cls, output_dir: str):
        """로그 파일 위치를 출력 디렉토리 아래로 변경"""
        cls.LOG_FILE = os.path.join(output_dir, "api_errors.log")

    @classmethod
    def log_error(
        cls,
        service: str,
        error_message: str,
        details: Any = None,
        severity: str = "error",
        project_id: Optional[str] = None,
        slot_id: Optional[str] = None,
    ):
        """
        Log an error to the log file.

        Args:
            service: Name of the stage/agent (e.g., "PromptAgent", "ImageAgent")
            error_message: Brief error description
            details: Additional context
            severity: Error severity ("warning", "error", "critical")
            project_id: Project the error belongs to, if any
            slot_id: Slot the error belongs to, if any
        """
        entry = {
            "timestamp": datetime.datetime.now().isoformat(),
            "service": service,
            "message": error_message,
            "details": str(details) if details else None,
            "severity": severity,
            "project_id": project_id,
            "slot_id": slot_id,
        }

        log = logger.critical if severity == "critical" else (
            logger.warning if severity == "warning" else logger.error
        )
        log(f"[{service}] {error_message}")

        with cls._lock:
            try:
                os.makedirs(os.path.dirname(cls.LOG_FILE) or ".", exist_ok=True)
                logs = cls._read_entries()
                logs.append(entry)
                # 최근 MAX_ENTRIES개만 유지
                if len(logs) > cls.MAX_ENTRIES:
                    logs = logs[-cls.MAX_ENTRIES:]
                with open(cls.LOG_FILE, "w", encoding="utf-8") as f:
                    json.dump(logs, f, indent=2, ensure_ascii=False)
            except OSError as e:
                logger.critical(f"Failed to write to error log: {e}")

    @classmethod
    def _read_entries(cls) -> List[Dict[str, Any]]:
        if not os.path.exists(cls.LOG_FILE):
            return []
        try:
            with open(cls.LOG_FILE, "r", encoding="utf-8") as f:
                content = f.read()
            if not content.strip():
                return []
            data = json.loads(content)
            return data if isinstance(data, list) else []
        except json.JSONDecodeError:
            return []  # 손상된 경우 리셋

    @classmethod
    def get_recent_errors(cls, limit: int = 20, project_id: Optional[str] = None) -> List[Dict]:
        """Get recent error logs, newest first."""
        with cls._lock:
            logs = cls._read_entries()
        if project_id:
            logs = [e for e in logs if e.get("project_id") == project_id]
        return sorted(logs, key=lambda x: x["timestamp"], reverse=True)[:limit]

    @classmethod
    def clear_logs(cls):
        """Clear the error log file."""
        with cls._lock:
            if os.path.exists(cls.LOG_FILE):
                os.remove(cls.LOG_FILE)
