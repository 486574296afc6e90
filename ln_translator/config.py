"""
Centralized configuration
"""
import os
import logging
from pathlib import Path
from dataclasses import dataclass
from dotenv import load_dotenv

# Setup debug logger for configuration
_config_logger = logging.getLogger('config')

# Check for DEBUG_MODE early (before .env is loaded, check environment)
_debug_mode = os.getenv('DEBUG_MODE', 'false').lower() == 'true'
if _debug_mode:
    logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    _config_logger.setLevel(logging.DEBUG)
    _config_logger.debug("DEBUG_MODE enabled - verbose logging active")

# .env is looked up in the current working directory
_env_file = Path.cwd() / '.env'
_dotenv_result = load_dotenv(_env_file)
if _debug_mode:
    _config_logger.debug(f"Looking for .env at: {_env_file.absolute()}")
    _config_logger.debug(f"load_dotenv() returned: {_dotenv_result}")

# Backend connection
LLM_PROVIDER = os.getenv('LLM_PROVIDER', 'ollama')  # 'ollama' or 'openai'
API_ENDPOINT = os.getenv('API_ENDPOINT', 'http://localhost:11434')
DEFAULT_MODEL = os.getenv('DEFAULT_MODEL', '')
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
OPENAI_API_ENDPOINT = os.getenv('OPENAI_API_ENDPOINT', 'https://api.openai.com/v1')
REQUEST_TIMEOUT = int(os.getenv('REQUEST_TIMEOUT', '900'))

# Generation settings
THINK_ENABLED = os.getenv('THINK_ENABLED', 'true').lower() == 'true'
PAUSE_SECONDS = float(os.getenv('PAUSE_SECONDS', '0'))
BATCH_SIZE = int(os.getenv('BATCH_SIZE', '6'))

# Retry on "temporarily unavailable" (HTTP 503)
MAX_UNAVAILABLE_RETRIES = int(os.getenv('MAX_UNAVAILABLE_RETRIES', '6'))
RETRY_DELAY_SECONDS = float(os.getenv('RETRY_DELAY_SECONDS', '10'))
MAX_RETRY_DELAY_SECONDS = float(os.getenv('MAX_RETRY_DELAY_SECONDS', '60'))

DEBUG_MODE = _debug_mode

# Partitioning
SENTENCE_TERMINATOR = '。'
SECTION_MAX_CHARS = 2000
SECTIONS_PER_UNIT = 3

# Completion heuristic: minimum share (%) of ASCII alphanumerics
COMPLETION_THRESHOLD = 75.0

# EPUB output layout
OUTPUT_LANGUAGE = 'en'
IMAGES_DIR = 'Images'
TEXT_DIR = 'Text'
STYLESHEET_NAME = 'stylesheet.css'

# Page images accepted for text extraction
IMAGE_MEDIA_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
}
IMAGE_EXTENSIONS = tuple(IMAGE_MEDIA_TYPES)

NAMESPACES = {
    'opf': 'http://www.idpf.org/2007/opf',
    'dc': 'http://purl.org/dc/elements/1.1/',
    'xhtml': 'http://www.w3.org/1999/xhtml',
    'epub': 'http://www.idpf.org/2007/ops',
    'ncx': 'http://www.daisy.org/z3986/2005/ncx/',
    'container': 'urn:oasis:names:tc:opendocument:xmlns:container',
    'xlink': 'http://www.w3.org/1999/xlink',
}


@dataclass
class TranslationConfig:
    """Unified configuration for CLI runs"""

    # Backend
    llm_provider: str = LLM_PROVIDER
    api_endpoint: str = API_ENDPOINT
    model: str = DEFAULT_MODEL
    openai_api_key: str = OPENAI_API_KEY
    timeout: int = REQUEST_TIMEOUT

    # Generation
    think: bool = THINK_ENABLED
    pause: float = PAUSE_SECONDS
    method: str = "batch"  # or "chain"
    batch_size: int = BATCH_SIZE

    # Retry
    max_retries: int = MAX_UNAVAILABLE_RETRIES
    retry_delay: float = RETRY_DELAY_SECONDS
    max_retry_delay: float = MAX_RETRY_DELAY_SECONDS

    enable_colors: bool = True

    @classmethod
    def from_cli_args(cls, args) -> 'TranslationConfig':
        """Create config from CLI arguments"""
        provider = getattr(args, 'provider', None) or LLM_PROVIDER
        endpoint = getattr(args, 'api_endpoint', None)
        if not endpoint:
            endpoint = OPENAI_API_ENDPOINT if provider == 'openai' else API_ENDPOINT
        return cls(
            llm_provider=provider,
            api_endpoint=endpoint,
            model=getattr(args, 'model', None) or DEFAULT_MODEL,
            openai_api_key=getattr(args, 'openai_api_key', None) or OPENAI_API_KEY,
            think=not getattr(args, 'no_think', False),
            pause=getattr(args, 'pause', PAUSE_SECONDS),
            method=getattr(args, 'method', 'batch'),
            batch_size=getattr(args, 'batch_size', BATCH_SIZE),
            enable_colors=not getattr(args, 'no_color', False),
        )

    def to_dict(self):
        """Convert to dictionary"""
        return {
            'llm_provider': self.llm_provider,
            'api_endpoint': self.api_endpoint,
            'model': self.model,
            'timeout': self.timeout,
            'think': self.think,
            'pause': self.pause,
            'method': self.method,
            'batch_size': self.batch_size,
            'max_retries': self.max_retries,
            'retry_delay': self.retry_delay,
            'max_retry_delay': self.max_retry_delay,
        }
