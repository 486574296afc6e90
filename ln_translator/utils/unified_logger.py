"""
Unified logging system for the light-novel translator
Provides consistent console output and structured entries for any UI listening in
"""
import sys
import os
from datetime import datetime
from typing import Optional, Dict, Any, Callable
from enum import Enum


class LogLevel(Enum):
    """Log levels with priority values"""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


class LogType(Enum):
    """Types of log messages for special handling"""
    GENERAL = "general"
    LLM_REQUEST = "llm_request"
    LLM_RESPONSE = "llm_response"
    PROGRESS = "progress"
    FILE_OPERATION = "file_operation"
    SESSION_START = "session_start"
    SESSION_END = "session_end"
    ERROR_DETAIL = "error_detail"


class Colors:
    """ANSI color codes for terminal output"""
    NO_COLOR = os.environ.get('NO_COLOR') is not None or not sys.stdout.isatty()

    YELLOW = '' if NO_COLOR else '\033[93m'       # headers
    WHITE = '' if NO_COLOR else '\033[97m'        # main text
    GRAY = '' if NO_COLOR else '\033[90m'         # technical info
    ORANGE = '' if NO_COLOR else '\033[38;5;214m' # input sent to the backend
    GREEN = '' if NO_COLOR else '\033[92m'        # backend output
    RED = '' if NO_COLOR else '\033[91m'          # errors
    ENDC = '' if NO_COLOR else '\033[0m'

    @classmethod
    def disable(cls):
        """Disable all colors"""
        cls.YELLOW = cls.WHITE = cls.GRAY = cls.ORANGE = cls.GREEN = cls.RED = cls.ENDC = ''


class UnifiedLogger:
    """
    Unified logger shared by the CLI and the translation sessions
    """

    def __init__(self,
                 name: str = "ln_translator",
                 console_output: bool = True,
                 enable_colors: bool = True,
                 min_level: LogLevel = LogLevel.INFO,
                 ui_callback: Optional[Callable] = None,
                 storage_callback: Optional[Callable] = None):
        """
        Initialize the unified logger

        Args:
            name: Logger name/identifier
            console_output: Whether to output to console
            enable_colors: Whether to use colored output
            min_level: Minimum log level to display
            ui_callback: Callback receiving every structured entry (live UI)
            storage_callback: Callback for storing logs (e.g., in memory)
        """
        self.name = name
        self.console_output = console_output
        self.enable_colors = enable_colors
        self.min_level = min_level
        self.ui_callback = ui_callback
        self.storage_callback = storage_callback

        self.session_state = {
            'current_page': 0,
            'total_pages': 0,
            'model': '',
            'start_time': None,
            'in_progress': False
        }

        if not enable_colors:
            Colors.disable()

    def _format_timestamp(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def _format_console_message(self, level: LogLevel, message: str,
                                log_type: LogType = LogType.GENERAL,
                                data: Optional[Dict[str, Any]] = None) -> str:
        """Format message for console output"""
        timestamp = self._format_timestamp()

        level_colors = {
            LogLevel.DEBUG: Colors.GRAY,
            LogLevel.INFO: Colors.WHITE,
            LogLevel.WARNING: Colors.YELLOW,
            LogLevel.ERROR: Colors.RED,
            LogLevel.CRITICAL: Colors.RED
        }
        color = level_colors.get(level, Colors.WHITE)

        if log_type == LogType.LLM_REQUEST:
            return self._format_llm_request(data or {})
        elif log_type == LogType.LLM_RESPONSE:
            return self._format_llm_response(data or {})
        elif log_type == LogType.PROGRESS:
            return self._format_progress(data or {})
        elif log_type == LogType.SESSION_START:
            return self._format_session_start(message, data or {})
        elif log_type == LogType.SESSION_END:
            return self._format_session_end(message, data or {})
        elif log_type == LogType.ERROR_DETAIL:
            return self._format_error_detail(message, data or {})
        else:
            level_str = f"[{level.name}]" if level != LogLevel.INFO else ""
            return f"{color}[{timestamp}] {level_str} {message}{Colors.ENDC}"

    def _format_llm_request(self, data: Dict[str, Any]) -> str:
        """Format a backend request"""
        output = [f"{Colors.YELLOW}{'=' * 80}{Colors.ENDC}"]
        timestamp = self._format_timestamp()
        output.append(f"{Colors.YELLOW}[{timestamp}] SENDING TO BACKEND{Colors.ENDC}")

        if 'page' in data:
            unit = data.get('unit')
            where = f"Page {data['page'] + 1}" + (f", unit {unit + 1}" if unit is not None else "")
            output.append(f"{Colors.YELLOW}{where}{Colors.ENDC}")
        if 'model' in data:
            output.append(f"{Colors.GRAY}Model: {data['model']}{Colors.ENDC}")

        output.append(f"\n{Colors.ORANGE}RAW PROMPT (INPUT):{Colors.ENDC}")
        output.append(f"{Colors.ORANGE}{data.get('prompt', '')}{Colors.ENDC}")
        return '\n'.join(output)

    def _format_llm_response(self, data: Dict[str, Any]) -> str:
        """Format a finished backend response"""
        timestamp = self._format_timestamp()
        output = [f"{Colors.GREEN}[{timestamp}] BACKEND RESPONSE (OUTPUT){Colors.ENDC}"]

        if 'execution_time' in data:
            output.append(f"{Colors.GRAY}Execution time: {data['execution_time']:.2f} seconds{Colors.ENDC}")

        # Full response only in debug mode
        if self.min_level == LogLevel.DEBUG:
            output.append(f"\n{Colors.GREEN}RAW RESPONSE:{Colors.ENDC}")
            output.append(f"{Colors.GREEN}{data.get('response', '')}{Colors.ENDC}")

        return '\n'.join(output)

    def _format_progress(self, data: Dict[str, Any]) -> str:
        """Format page progress"""
        current = data.get('current', self.session_state['current_page'])
        total = data.get('total', self.session_state['total_pages'])
        percentage = data.get('percentage', (current / total * 100) if total else 0)

        bar_length = 30
        filled = int(bar_length * percentage / 100)
        bar = '█' * filled + '░' * (bar_length - filled)
        return (f"\n{Colors.WHITE}PROGRESS: {current}/{total} pages ({percentage:.1f}%){Colors.ENDC}\n"
                f"{Colors.WHITE}[{bar}] {percentage:.1f}%{Colors.ENDC}")

    def _format_session_start(self, message: str, data: Dict[str, Any]) -> str:
        """Format session start message"""
        self.session_state.update({
            'model': data.get('model', 'Unknown'),
            'total_pages': data.get('total_pages', 0),
            'current_page': data.get('start_page', 0),
            'start_time': datetime.now(),
            'in_progress': True
        })

        output = [f"{Colors.YELLOW}TRANSLATION STARTED{Colors.ENDC}"]
        if 'source' in data:
            output.append(f"{Colors.WHITE}Source: {data['source']}{Colors.ENDC}")
        output.append(f"{Colors.GRAY}Model: {self.session_state['model']}{Colors.ENDC}")
        if self.session_state['total_pages'] > 0:
            output.append(f"{Colors.WHITE}Total Pages: {self.session_state['total_pages']}{Colors.ENDC}")
        return '\n'.join(output)

    def _format_session_end(self, message: str, data: Dict[str, Any]) -> str:
        """Format session end message"""
        output = [f"\n{Colors.WHITE}{message or 'TRANSLATION COMPLETE'}{Colors.ENDC}"]

        if self.session_state['start_time']:
            duration = datetime.now() - self.session_state['start_time']
            output.append(f"{Colors.GRAY}Duration: {duration}{Colors.ENDC}")

        if 'output' in data:
            output.append(f"{Colors.WHITE}Output saved to: {data['output']}{Colors.ENDC}")

        if 'stats' in data:
            stats = data['stats']
            output.append(f"{Colors.WHITE}Complete pages: {stats.get('complete', 0)}{Colors.ENDC}")
            if stats.get('error', 0) > 0:
                output.append(f"{Colors.YELLOW}Pages flagged for review: {stats['error']}{Colors.ENDC}")

        self.session_state['in_progress'] = False
        return '\n'.join(output)

    def _format_error_detail(self, message: str, data: Dict[str, Any]) -> str:
        """Format detailed error message"""
        timestamp = self._format_timestamp()
        output = [f"{Colors.RED}[{timestamp}] ERROR: {message}{Colors.ENDC}"]
        if 'details' in data:
            output.append(f"{Colors.RED}Details: {data['details']}{Colors.ENDC}")
        if 'page' in data:
            output.append(f"{Colors.RED}Page: {data['page'] + 1}{Colors.ENDC}")
        return '\n'.join(output)

    def log(self, level: LogLevel, message: str,
            log_type: LogType = LogType.GENERAL,
            data: Optional[Dict[str, Any]] = None):
        """
        Main logging method

        Args:
            level: Log level
            message: Log message
            log_type: Type of log for special formatting
            data: Additional data for the log entry
        """
        if level.value < self.min_level.value:
            return

        if log_type == LogType.PROGRESS and data and 'current' in data:
            self.session_state['current_page'] = data['current']

        if self.console_output:
            try:
                console_msg = self._format_console_message(level, message, log_type, data)
                if console_msg:
                    print(console_msg, flush=True)
            except UnicodeEncodeError:
                # Consoles with a legacy code page cannot print Japanese text
                safe_message = message.encode('ascii', 'replace').decode('ascii')
                print(f"[{self._format_timestamp()}] {safe_message}", flush=True)

        log_entry = {
            'timestamp': datetime.now().isoformat(),
            'level': level.name,
            'type': log_type.value,
            'message': message,
            'data': data or {}
        }

        if self.ui_callback:
            self.ui_callback(log_entry)
        if self.storage_callback:
            self.storage_callback(log_entry)

    # Convenience methods
    def debug(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.DEBUG, message, log_type, data)

    def info(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.INFO, message, log_type, data)

    def warning(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.WARNING, message, log_type, data)

    def error(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.ERROR, message, log_type, data)

    def critical(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.CRITICAL, message, log_type, data)

    def create_legacy_callback(self):
        """
        Create a ``log_callback(key, message)`` function for the core components.

        The key is either a level name ("debug", "info", "warning", "error")
        or a short event key; keys containing "error"/"warning" map to that level.
        """
        def legacy_callback(key: str, message: str = "", data: Optional[Dict[str, Any]] = None):
            if data and isinstance(data, dict):
                entry_type = data.get('type')
                if entry_type == 'llm_request':
                    self.log(LogLevel.DEBUG, "Backend Request", LogType.LLM_REQUEST, data)
                    return
                if entry_type == 'llm_response':
                    self.log(LogLevel.DEBUG, "Backend Response", LogType.LLM_RESPONSE, data)
                    return
                if entry_type == 'progress':
                    self.log(LogLevel.INFO, "Progress Update", LogType.PROGRESS, data)
                    return

            text = message or key
            lowered = key.lower()
            if lowered == "debug":
                self.debug(text, data=data)
            elif "error" in lowered:
                self.error(text, data=data)
            elif "warning" in lowered:
                self.warning(text, data=data)
            else:
                self.info(text, data=data)

        return legacy_callback


# Global logger instance
_global_logger = None


def get_logger(name: str = "ln_translator", **kwargs) -> UnifiedLogger:
    """
    Get or create the global logger instance

    Args:
        name: Logger name
        **kwargs: Additional arguments for UnifiedLogger

    Returns:
        UnifiedLogger instance
    """
    global _global_logger
    if _global_logger is None:
        _global_logger = UnifiedLogger(name, **kwargs)
    else:
        if 'ui_callback' in kwargs:
            _global_logger.ui_callback = kwargs['ui_callback']
        if 'storage_callback' in kwargs:
            _global_logger.storage_callback = kwargs['storage_callback']
    return _global_logger


def setup_cli_logger(enable_colors: bool = True) -> UnifiedLogger:
    """Setup logger for CLI usage"""
    # Import here to avoid circular dependencies
    from ln_translator.config import DEBUG_MODE

    return get_logger(
        console_output=True,
        enable_colors=enable_colors,
        min_level=LogLevel.DEBUG if DEBUG_MODE else LogLevel.INFO
    )


# === Module-level convenience functions ===

def log(level: LogLevel, message: str,
        log_type: LogType = LogType.GENERAL,
        data: Optional[Dict[str, Any]] = None):
    """Log through the global logger."""
    get_logger().log(level, message, log_type, data)


def debug(message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
    log(LogLevel.DEBUG, message, log_type, data)


def info(message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
    log(LogLevel.INFO, message, log_type, data)


def warning(message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
    log(LogLevel.WARNING, message, log_type, data)


def error(message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
    log(LogLevel.ERROR, message, log_type, data)
