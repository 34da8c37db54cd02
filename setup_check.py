#!/usr/bin/env python3
"""
Environment check for the SceneCast worker

Verifies the interpreter, the ffmpeg toolchain and its filters, installed
packages, the configuration file and provider API keys, then prints a
summary table.
"""

import importlib
import os
import subprocess
import sys
from pathlib import Path
from typing import Callable, List, Tuple

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

console = Console()

MIN_PYTHON = (3, 9)
REQUIRED_FILTERS = ("xfade", "acrossfade", "drawtext", "amix", "aloop", "apad", "adelay")
REQUIRED_PACKAGES = [
    ('pydantic', 'pydantic'),
    ('yaml', 'PyYAML'),
    ('ffmpeg', 'ffmpeg-python'),
    ('aiohttp', 'aiohttp'),
    ('dotenv', 'python-dotenv'),
    ('rich', 'rich'),
    ('openai', 'openai'),
    ('redis', 'redis'),
]
API_KEYS = [
    ("FAL_API_KEY", "scene video and music generation", True),
    ("ELEVENLABS_API_KEY", "narration", True),
    ("OPENAI_API_KEY", "music prompt optimization", False),
]


def report(label: str, ok: bool, hint: str = "") -> bool:
    mark = "[green]✓[/green]" if ok else "[red]✗[/red]"
    console.print(f"  {mark} {label}" + (f" [dim]({hint})[/dim]" if hint and not ok else ""))
    return ok


def check_python() -> bool:
    current = sys.version_info[:3]
    return report(f"Python {'.'.join(map(str, current))}",
                  current[:2] >= MIN_PYTHON, f"need {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+")


def check_ffmpeg() -> bool:
    from scenecast.video_assembly.media_tool import MediaTool
    tool = MediaTool()
    if not report("ffmpeg and ffprobe on PATH", tool.is_available(),
                  "install from https://ffmpeg.org/download.html"):
        return False

    listing = subprocess.run([tool.ffmpeg_cmd, "-hide_banner", "-filters"],
                             capture_output=True, text=True, timeout=10).stdout
    missing = [name for name in REQUIRED_FILTERS if f" {name} " not in listing]
    return report(f"filters: {', '.join(REQUIRED_FILTERS)}", not missing,
                  f"missing {', '.join(missing)}; drawtext needs an ffmpeg built with libfreetype")


def check_packages() -> bool:
    missing = []
    for module, dist in REQUIRED_PACKAGES:
        try:
            importlib.import_module(module)
        except ImportError:
            missing.append(dist)
        report(dist, dist not in missing, f"pip install {dist}")
    if missing:
        console.print(f"  [yellow]pip install {' '.join(missing)}[/yellow]")
    return not missing


def check_config(path: str = "configs/config.yaml") -> bool:
    if not report(f"{path} exists", Path(path).exists()):
        return False
    try:
        from scenecast.utils.config import Config
        config = Config.load(path)
    except Exception as e:
        return report("config parses", False, str(e))

    report("config parses", True)
    ok = report(f"{len(config.video_models)} video models", bool(config.video_models))
    ok &= report(f"music model '{config.music.default_model}' registered",
                 config.music.default_model in config.music_models)
    ok &= report("providers for every model",
                 all(m.provider in config.providers
                     for m in list(config.video_models.values()) + list(config.music_models.values())))
    for directory in (config.paths.temp, config.paths.logs, config.storage.root,
                      config.persistence.projects_dir):
        Path(directory).mkdir(parents=True, exist_ok=True)
    return ok


def check_api_keys() -> bool:
    load_dotenv(".env")
    load_dotenv(".env.local", override=True)
    ok = True
    for key, purpose, required in API_KEYS:
        present = bool(os.getenv(key))
        report(key, present, f"{'required' if required else 'optional'}: {purpose}")
        ok &= present or not required
    return ok


def main():
    console.print("[bold]🎬 SceneCast setup check[/bold]")
    checks: List[Tuple[str, Callable[[], bool]]] = [
        ("Python", check_python),
        ("FFmpeg", check_ffmpeg),
        ("Packages", check_packages),
        ("Configuration", check_config),
        ("API keys", check_api_keys),
    ]

    results = []
    for name, check in checks:
        console.rule(name)
        try:
            results.append((name, check()))
        except Exception as e:
            console.print(f"  [red]{name} check crashed: {e}[/red]")
            results.append((name, False))

    table = Table(title="Setup summary")
    table.add_column("Check")
    table.add_column("Result")
    for name, ok in results:
        table.add_row(name, "[green]PASS[/green]" if ok else "[red]FAIL[/red]")
    console.print(table)

    if all(ok for _, ok in results):
        console.print("[green]Ready.[/green] Try: python main.py --mode single --video-id <project> --user-id <user>")
        return 0
    console.print("[yellow]Fix the failed checks above, then run this script again.[/yellow]")
    return 1


if __name__ == "__main__":
    sys.exit(main())
