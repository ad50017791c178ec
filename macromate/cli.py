"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

macromate コマンドとして以下のサブコマンドを提供する:
  - record: ブラウザ操作をマクロとして記録
  - run: マクロを再生（ライブページまたは静的 HTML）
  - show: マクロのステップ一覧を表示
  - validate: スキーマ検証
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer

from .dsl.parser import MacroParser
from .dsl.schema import ClickStep, MacroDocument, SelectStep, Step, TypeStep, UnknownStep, WaitStep

if TYPE_CHECKING:
    from .core.replay import ReplayConfig, ReplayResult

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "macromate — ブラウザ操作のマクロ記録・再生ツール\n\n"
        "基本の流れ:\n"
        "  1. macromate record URL -o macro.yaml   操作を記録（ブラウザを閉じると終了）\n"
        "  2. macromate run macro.yaml             記録した操作を再生\n\n"
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="詳細ログを出力する"),
) -> None:
    """ログ設定を行う。"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(name)s - %(message)s",
    )


# ---------------------------------------------------------------------------
# record コマンド
# ---------------------------------------------------------------------------

@app.command()
def record(
    url: str = typer.Argument(..., help="記録を開始する URL"),
    output: Path = typer.Option(
        Path("macro.yaml"), "--output", "-o", help="出力先ファイルパス（.yaml / .json）",
    ),
    title: str = typer.Option("Recorded Macro", "--title", help="マクロ名"),
    channel: str = typer.Option(
        "chromium", "--channel", "-c",
        help="ブラウザチャンネル (chromium / chrome / msedge)",
    ),
) -> None:
    """ブラウザを開いて操作を記録する。ブラウザを閉じると記録を終了して保存します。"""
    typer.echo(f"URL: {url}")
    typer.echo("ブラウザを閉じると記録が終了します。\n")

    try:
        document = asyncio.run(_record(url, title, channel))
        MacroParser().dump(document, output)
        typer.echo(f"{len(document.steps)} ステップを記録しました: {output}")
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


async def _record(url: str, title: str, channel: str) -> MacroDocument:
    from .browser.capture import PageCaptureSource
    from .browser.session import BrowserSession
    from .recorder.recorder import EventRecorder

    async with BrowserSession(headed=True, channel=channel) as browser:
        page = await browser.open(url)
        recorder = EventRecorder()
        session = await recorder.start(PageCaptureSource(page))
        await browser.wait_closed()
        steps = await recorder.stop(session)
    return MacroDocument(title=title, url=url, steps=steps)


# ---------------------------------------------------------------------------
# run コマンド
# ---------------------------------------------------------------------------

@app.command()
def run(
    macro_file: Path = typer.Argument(..., help="再生するマクロファイル"),
    url: Optional[str] = typer.Option(
        None, "--url", help="再生先の URL（省略時はマクロに記録された URL）",
    ),
    html: Optional[Path] = typer.Option(
        None, "--html", help="ブラウザを使わず静的 HTML に対して再生する",
    ),
    headed: bool = typer.Option(True, "--headed/--headless", help="ブラウザ表示モード（デフォルト: 表示）"),
    step_delay: int = typer.Option(500, "--step-delay", help="ステップ間の待機（ミリ秒）"),
    settle: int = typer.Option(200, "--settle", help="スクロール後の待機（ミリ秒）"),
) -> None:
    """マクロを再生する。要素が見つからないステップで中断し、終了コード 1 を返します。"""
    from .core.replay import ReplayConfig

    try:
        document = MacroParser().load(macro_file)
        config = ReplayConfig(settle_ms=settle, step_delay_ms=step_delay)

        if html is not None:
            result = asyncio.run(_run_offline(document, html, config))
        else:
            target_url = url or document.url
            if not target_url:
                typer.echo("エラー: 再生先の URL がありません（--url を指定してください）", err=True)
                raise typer.Exit(code=1)
            result = asyncio.run(_run_live(document, target_url, headed, config))

        typer.echo(f"マクロ: {document.title}")
        typer.echo(f"ステータス: {result.status.value}")
        typer.echo(f"実行時間: {result.duration_ms:.0f}ms")
        typer.echo(f"ステップ: {result.steps_run}/{result.steps_total}")
        if not result.completed:
            typer.echo(f"中断: {result.error}", err=True)
            raise typer.Exit(code=1)
    except typer.Exit:
        raise
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


async def _run_offline(document: MacroDocument, html: Path, config: ReplayConfig) -> ReplayResult:
    from .core.replay import MacroPlayer
    from .dom.document import Document
    from .dom.host import DocumentHost

    page = Document.from_html(html.read_text(encoding="utf-8"))
    player = MacroPlayer(DocumentHost(page), config)
    return await player.run(document.steps)


async def _run_live(
    document: MacroDocument, url: str, headed: bool, config: ReplayConfig,
) -> ReplayResult:
    from .browser.host import PlaywrightHost
    from .browser.session import BrowserSession
    from .core.replay import MacroPlayer

    async with BrowserSession(headed=headed) as browser:
        page = await browser.open(url)
        player = MacroPlayer(PlaywrightHost(page), config)
        return await player.run(document.steps)


# ---------------------------------------------------------------------------
# show コマンド
# ---------------------------------------------------------------------------

@app.command()
def show(
    macro_file: Path = typer.Argument(..., help="表示するマクロファイル"),
) -> None:
    """マクロのステップ一覧を表示する。"""
    try:
        document = MacroParser().load(macro_file)
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"マクロ: {document.title}")
    if document.url:
        typer.echo(f"URL: {document.url}")
    typer.echo(f"ステップ: {len(document.steps)}")

    for idx, step in enumerate(document.steps, 1):
        typer.echo(f"  {idx:>3}. {_describe(step)}")
        if isinstance(step, UnknownStep):
            typer.echo(f"       警告: 未知のステップ種別です（再生時はスキップされます）: {step.kind}")


def _describe(step: Step) -> str:
    if isinstance(step, ClickStep):
        detail = f" checked={step.checked}" if step.checked is not None else ""
        label = f' "{step.text}"' if step.text else ""
        return f"click  {step.selector}{label}{detail}"
    if isinstance(step, TypeStep):
        suffix = " (secret)" if step.isSecret else ""
        return f'type   {step.selector} "{step.text}"{suffix}'
    if isinstance(step, SelectStep):
        return f'select {step.selector} "{step.value}"'
    if isinstance(step, WaitStep):
        timeout = f"{step.timeoutMs}ms" if step.timeoutMs is not None else "default"
        return f"wait   {timeout}"
    return f"{step.kind} (unknown)"


# ---------------------------------------------------------------------------
# validate コマンド
# ---------------------------------------------------------------------------

@app.command()
def validate(
    macro_file: Path = typer.Argument(..., help="検証するマクロファイル"),
) -> None:
    """マクロファイルのスキーマを検証する。"""
    errors = MacroParser().validate(macro_file)
    if not errors:
        typer.echo(f"✓ {macro_file} は有効です")
        return

    typer.echo(f"✗ {macro_file} に {len(errors)} 件のエラーがあります:", err=True)
    for err in errors:
        line = f" (行 {err.line})" if err.line is not None else ""
        typer.echo(f"  [{err.location}]{line} {err.message}", err=True)
    raise typer.Exit(code=1)
