"""
Command-line interface: translate an EPUB to markdown, rebuild an EPUB from
edited markdown, preview a chapter's partition, extract text from page images.
"""
import argparse
import asyncio
import sys
from pathlib import Path

from ln_translator.config import (
    API_ENDPOINT, BATCH_SIZE, DEFAULT_MODEL, LLM_PROVIDER, OPENAI_API_KEY, PAUSE_SECONDS,
    TranslationConfig,
)
from ln_translator.core.epub import DocBuilder, EpubArchive, preview_chapter
from ln_translator.core.exceptions import TranslatorError
from ln_translator.core.llm import create_backend
from ln_translator.core.translation import (
    ExtractionSession, RetryConfig, Settings, TranslationSession, method_from_name,
)
from ln_translator.utils.file_utils import (
    get_unique_output_path, load_markdown_folder, read_bytes_file, read_text_file,
    write_epub, write_text_atomic,
)
from ln_translator.utils.unified_logger import LogType, setup_cli_logger


def _add_backend_arguments(parser):
    parser.add_argument("--provider", default=LLM_PROVIDER, choices=["ollama", "openai"],
                        help=f"Backend to use (default: {LLM_PROVIDER}).")
    parser.add_argument("--api_endpoint", default=None,
                        help=f"Backend URL (default: {API_ENDPOINT} for Ollama).")
    parser.add_argument("-m", "--model", default=DEFAULT_MODEL,
                        help="Model name (default: first model offered by the backend).")
    parser.add_argument("--openai_api_key", default=OPENAI_API_KEY, help="API key for the openai provider.")
    parser.add_argument("--method", default="batch", choices=["batch", "chain"],
                        help="Run units concurrently in batches or one after another (default: batch).")
    parser.add_argument("--batch-size", dest="batch_size", type=int, default=BATCH_SIZE,
                        help=f"Units per batch (default: {BATCH_SIZE}).")
    parser.add_argument("--no-think", dest="no_think", action="store_true",
                        help="Ask reasoning models not to think before answering (Ollama only).")
    parser.add_argument("--pause", type=float, default=PAUSE_SECONDS,
                        help=f"Seconds to wait between pages (default: {PAUSE_SECONDS}).")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ln-translate",
                                     description="Translate light-novel EPUBs with an LLM.")
    parser.add_argument("--no-color", dest="no_color", action="store_true", help="Disable colored output.")
    commands = parser.add_subparsers(dest="command", required=True)

    translate = commands.add_parser("translate", help="Translate an EPUB into a folder of markdown pages.")
    translate.add_argument("-i", "--input", required=True, help="EPUB file to translate.")
    translate.add_argument("-o", "--output", default=None,
                           help="Output folder (default: <input name>_translated next to the input).")
    translate.add_argument("--start", type=int, default=1, help="First page to translate, 1-based (default: 1).")
    _add_backend_arguments(translate)
    translate.set_defaults(handler=run_translate)

    build = commands.add_parser("build", help="Rebuild an EPUB from the source and edited markdown pages.")
    build.add_argument("-i", "--input", required=True, help="Source EPUB file.")
    build.add_argument("-d", "--dir", required=True, help="Folder of <chapter>.md files.")
    build.add_argument("-o", "--output", default=None, help="Output EPUB path.")
    build.add_argument("--toc", default=None, help="Markdown table of contents with [title](chapter) links.")
    build.set_defaults(handler=run_build)

    preview = commands.add_parser("preview", help="Show how one chapter is partitioned.")
    preview.add_argument("-i", "--input", required=True, help="EPUB file.")
    preview.add_argument("-c", "--chapter", type=int, default=1, help="Spine position, 1-based (default: 1).")
    preview.set_defaults(handler=run_preview)

    extract = commands.add_parser("extract", help="Extract text from a folder of page images.")
    extract.add_argument("-d", "--dir", required=True, help="Folder of jpg/png page images.")
    extract.add_argument("-o", "--output", default=None, help="Output text file (default: <folder>.md).")
    _add_backend_arguments(extract)
    extract.set_defaults(handler=run_extract)

    return parser


def _session_options(config: TranslationConfig, log_callback) -> dict:
    return {
        'settings': Settings(think=config.think, pause=config.pause),
        'method': method_from_name(config.method, config.batch_size),
        'retry_config': RetryConfig(
            max_attempts=config.max_retries,
            initial_delay=config.retry_delay,
            max_delay=config.max_retry_delay,
        ),
        'log_callback': log_callback,
    }


def _create_backend(config: TranslationConfig, log_callback):
    return create_backend(
        config.llm_provider,
        api_endpoint=config.api_endpoint,
        api_key=config.openai_api_key,
        timeout=config.timeout,
        log_callback=log_callback,
    )


async def run_translate(args, logger, log_callback) -> int:
    config = TranslationConfig.from_cli_args(args)
    source = Path(args.input)
    output = args.output or get_unique_output_path(str(source.with_name(f"{source.stem}_translated")))

    session = TranslationSession(**_session_options(config, log_callback))
    session.open_epub(await read_bytes_file(source), source.name)

    logger.info("Translation Started", LogType.SESSION_START, {
        'input_file': str(source),
        'output_file': output,
        'pages': len(session.pages),
        'model': config.model or '(first available)',
        'llm_provider': config.llm_provider,
        'api_endpoint': config.api_endpoint,
        'method': str(session.method),
    })

    backend = _create_backend(config, log_callback)
    try:
        await session.connect(backend, config.model or None)
        session.translate(max(args.start, 1) - 1)
        await session.join()
    finally:
        await backend.close()

    await session.save_pages(output)
    summary = session.summary()
    if session.last_error is not None:
        logger.error(f"Translation stopped: {session.last_error}", LogType.ERROR_DETAIL, {
            'details': str(session.last_error),
            'input_file': str(source),
        })
        return 1

    logger.info("Translation Completed", LogType.SESSION_END, {'output': output, 'stats': summary})
    return 0


async def run_build(args, logger, log_callback) -> int:
    source = Path(args.input)
    archive = await EpubArchive.from_path(str(source))
    pages = await load_markdown_folder(args.dir)

    toc = None
    if args.toc:
        toc = await read_text_file(args.toc)
        toc_path = Path(args.toc).resolve()
        pages = [page for page in pages if Path(page.path).resolve() != toc_path]

    if args.output:
        output = Path(args.output)
        name = output.stem
    else:
        name = f"{source.stem}_translated"
        output = source.with_name(f"{name}.epub")

    data, _ = DocBuilder(archive, log_callback).build(name, pages, toc)
    path = await write_epub(get_unique_output_path(str(output)), data)
    logger.info(f"EPUB written: {path}", LogType.FILE_OPERATION, {'pages': len(pages), 'bytes': len(data)})
    return 0


async def run_preview(args, logger, log_callback) -> int:
    archive = await EpubArchive.from_path(args.input)
    sys.stdout.write(preview_chapter(archive, args.chapter - 1) + "\n")
    return 0


async def run_extract(args, logger, log_callback) -> int:
    config = TranslationConfig.from_cli_args(args)
    folder = Path(args.dir)
    output = args.output or get_unique_output_path(str(folder.with_name(f"{folder.name}.md")))

    session = ExtractionSession(**_session_options(config, log_callback))
    await session.open_folder(folder)

    backend = _create_backend(config, log_callback)
    try:
        await session.connect(backend, config.model or None)
        session.extract(0)
        await session.join()
    finally:
        await backend.close()

    await write_text_atomic(output, session.save_text())
    if session.last_error is not None:
        logger.error(f"Extraction stopped: {session.last_error}", LogType.ERROR_DETAIL, {
            'details': str(session.last_error),
            'folder': str(folder),
        })
        return 1

    logger.info(f"Extracted text written: {output}", LogType.FILE_OPERATION, {'images': len(session.pages)})
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if getattr(args, 'provider', None) == "openai" and not args.openai_api_key and not args.api_endpoint:
        parser.error("--openai_api_key is required when using the openai provider")
    if getattr(args, 'batch_size', 1) < 1:
        parser.error("--batch-size must be positive")

    logger = setup_cli_logger(enable_colors=not args.no_color)
    log_callback = logger.create_legacy_callback()

    try:
        return asyncio.run(args.handler(args, logger, log_callback))
    except TranslatorError as e:
        logger.error(f"{args.command} failed: {e.message}", LogType.ERROR_DETAIL, {
            'details': str(e),
        })
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
