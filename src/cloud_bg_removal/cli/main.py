"""命令行入口。"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.status import Status

from cloud_bg_removal.core.config import (
    ENV_CLOUD_NAME,
    ENV_LOG_FILE,
    ENV_OUTPUT_DIRECTORY,
    ENV_UPLOAD_PRESET,
    RemovalConfig,
    resolve_output_directory,
)
from cloud_bg_removal.core.exceptions import PipelineBusyError
from cloud_bg_removal.core.progress import StateUpdate
from cloud_bg_removal.processing.pipeline import BackgroundRemovalPipeline
from cloud_bg_removal.utils.desktop import copy_to_clipboard, get_finder_selection, open_file, reveal_file
from cloud_bg_removal.utils.logging import setup_logging

app = typer.Typer(help="上传图片至 Cloudinary 并移除背景。")
console = Console()

EXIT_FAILED = 1
EXIT_USAGE = 2


def _build_state_callback(status: Status):
    def callback(update: StateUpdate) -> None:
        if update.message:
            status.update(f"[bold blue]{escape(update.message.splitlines()[0])}")

    return callback


def _build_config(
    cloud_name: Optional[str],
    upload_preset: Optional[str],
    output_dir: Optional[str],
    log_file: Optional[Path],
) -> RemovalConfig:
    return RemovalConfig.from_env(
        cloud_name=cloud_name,
        upload_preset=upload_preset,
        output_directory=output_dir,
        log_file=log_file.expanduser() if log_file else None,
    )


@app.command("run")
def run_cli(  # noqa: PLR0913
    path: Optional[Path] = typer.Argument(None, help="待处理的图片，不指定时读取 Finder 选区"),
    finder: bool = typer.Option(sys.platform == "darwin", "--finder/--no-finder", help="未指定图片时读取 Finder 选区"),
    cloud_name: Optional[str] = typer.Option(None, "--cloud-name", envvar=ENV_CLOUD_NAME, help="Cloudinary 云端账户名"),
    upload_preset: Optional[str] = typer.Option(
        None, "--upload-preset", envvar=ENV_UPLOAD_PRESET, help="未签名上传预设"
    ),
    output_dir: Optional[str] = typer.Option(
        None, "--output-dir", "-o", envvar=ENV_OUTPUT_DIRECTORY, help="输出目录，支持 ~ 与相对路径"
    ),
    log_file: Optional[Path] = typer.Option(None, "--log-file", envvar=ENV_LOG_FILE, help="上传诊断日志位置"),
    open_result: bool = typer.Option(True, "--open/--no-open", help="完成后用预览打开结果"),
    reveal: bool = typer.Option(False, "--reveal", help="完成后在 Finder 中显示结果"),
    copy_path: bool = typer.Option(False, "--copy-path", help="完成后复制结果路径到剪贴板"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """移除单张图片的背景。"""

    setup_logging(logging.DEBUG if verbose else logging.WARNING)
    config = _build_config(cloud_name, upload_preset, output_dir, log_file)

    if not config.is_configured():
        console.print("[red]配置错误：请设置 Cloudinary 云端账户名与上传预设[/red]")
        raise typer.Exit(EXIT_USAGE)

    selected = path
    if selected is None and finder:
        selected = get_finder_selection()
    if selected is None:
        console.print("[red]未选择文件：请指定图片路径或先在 Finder 中选中图片[/red]")
        raise typer.Exit(EXIT_USAGE)

    with Status("准备中...", console=console) as status:
        pipeline = BackgroundRemovalPipeline(
            config,
            state_callback=_build_state_callback(status),
            opener=open_file if open_result else None,
        )
        with pipeline:
            try:
                result = pipeline.run(selected.expanduser())
            except PipelineBusyError as exc:
                console.print(f"[yellow]{escape(str(exc))}[/yellow]")
                raise typer.Exit(EXIT_FAILED) from exc

    if not result.success:
        console.print(f"[red]错误：{escape(result.summary or '')}[/red]")
        console.print(result.detail or "", markup=False)
        raise typer.Exit(EXIT_FAILED)

    console.print(f"[green]完成：{escape(result.summary or '')}[/green]")
    console.print(result.detail or "", markup=False)
    if result.output_path is None:
        return
    if reveal:
        reveal_file(result.output_path)
    if copy_path:
        if copy_to_clipboard(str(result.output_path)):
            console.print("路径已复制到剪贴板")
        else:
            console.print(f"[yellow]无法访问剪贴板，结果路径：{escape(str(result.output_path))}[/yellow]")


@app.command("config")
def show_config(
    cloud_name: Optional[str] = typer.Option(None, "--cloud-name", envvar=ENV_CLOUD_NAME),
    upload_preset: Optional[str] = typer.Option(None, "--upload-preset", envvar=ENV_UPLOAD_PRESET),
    output_dir: Optional[str] = typer.Option(None, "--output-dir", "-o", envvar=ENV_OUTPUT_DIRECTORY),
    log_file: Optional[Path] = typer.Option(None, "--log-file", envvar=ENV_LOG_FILE),
) -> None:
    """显示当前生效的配置。"""

    config = _build_config(cloud_name, upload_preset, output_dir, log_file)
    typer.echo(f"Cloud name: {config.cloud_name or '⚠️ 未设置'}")
    typer.echo(f"Upload preset: {config.upload_preset or '⚠️ 未设置'}")
    typer.echo(f"输出目录: {resolve_output_directory(config.output_directory)}")
    typer.echo(f"诊断日志: {config.log_file}")
    if not config.is_configured():
        raise typer.Exit(EXIT_USAGE)


if __name__ == "__main__":
    app()
