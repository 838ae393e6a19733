"""callrelay 的 CLI 命令。"""

import asyncio
import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from callrelay import __version__, __logo__

app = typer.Typer(
    name="callrelay",
    help=f"{__logo__} callrelay - 将直播聊天中的 !call 命令转发到 calls 端点",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} callrelay v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """callrelay - 将直播聊天中的 !call 命令转发到 calls 端点。"""
    pass


def _setup_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _load_config(env_file: Path | None, authenticated: bool = False):
    """加载配置。缺少必需项或配置值无效时以退出码 1 退出。"""
    from callrelay.config.loader import load_config
    from callrelay.errors import ConfigError

    try:
        return load_config(env_file, authenticated=authenticated)
    except ConfigError as e:
        console.print(f"[red]配置错误：{escape(str(e))}[/red]")
        raise typer.Exit(1)


def _read_config(env_file: Path | None):
    """读取配置但不检查必需项。配置值无效时以退出码 1 退出。"""
    from callrelay.config.loader import read_config
    from callrelay.errors import ConfigError

    try:
        return read_config(env_file)
    except ConfigError as e:
        console.print(f"[red]配置错误：{escape(str(e))}[/red]")
        raise typer.Exit(1)


# ============================================================================
# Relay
# ============================================================================


@app.command()
def run(
    auth: bool = typer.Option(
        None, "--auth/--anonymous", help="认证模式（解析频道并在聊天中回显结果）；默认取决于是否设置了 DLIVE_AUTH_KEY"
    ),
    env_file: Path = typer.Option(None, "--env-file", "-e", help=".env 文件路径"),
    verbose: bool = typer.Option(False, "--verbose", help="详细输出"),
):
    """订阅频道聊天并转发 !call 命令。"""
    from callrelay.bus.queue import MessageBus
    from callrelay.channels.dlive import DLiveChannel
    from callrelay.channels.graphql import resolve_streamer
    from callrelay.delivery.client import CallDeliveryClient
    from callrelay.errors import ChannelResolutionError
    from callrelay.relay.dispatcher import CallDispatcher

    config = _load_config(env_file, authenticated=bool(auth))
    _setup_logging(verbose)
    authenticated = config.authenticated if auth is None else auth

    async def relay():
        if authenticated:
            try:
                streamer = await resolve_streamer(config.dlive.channel, config.dlive.api_url)
            except ChannelResolutionError as e:
                console.print(f"[red]DLive 错误：{escape(str(e))}[/red]")
                raise typer.Exit(1)
        else:
            streamer = config.dlive.channel

        bus = MessageBus() if authenticated and config.dlive.announce else None
        delivery = CallDeliveryClient(config.calls)
        dispatcher = CallDispatcher(delivery, bus=bus, chat_id=streamer)
        channel = DLiveChannel(
            config.dlive,
            streamer,
            dispatcher.handle,
            reconnect=config.reconnect,
            bus=bus,
        )

        mode = "认证" if authenticated else "匿名"
        console.print(f"{__logo__} 正在以{mode}模式监听 #{streamer}，转发到 {config.calls.url}")

        tasks = [channel.start()]
        if bus is not None:
            tasks.append(bus.dispatch_outbound())
        try:
            await asyncio.gather(*tasks)
        finally:
            if bus is not None:
                bus.stop()
            await channel.stop()
            await delivery.close()

    try:
        asyncio.run(relay())
    except KeyboardInterrupt:
        console.print("\n正在关闭...")


# ============================================================================
# Tools
# ============================================================================


@app.command()
def parse(text: str = typer.Argument(..., help="聊天文本，例如 '!call \"intro\"'")):
    """解析一条聊天文本，显示提取的 slot。"""
    from callrelay.relay.parser import parse_call_command

    slot = parse_call_command(text)
    if slot is None:
        console.print("[yellow]不是 !call 命令[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] slot：{slot}")


@app.command()
def send(
    slot: str = typer.Argument(..., help="要投递的 slot"),
    user: str = typer.Option("callrelay", "--user", "-u", help="用户名"),
    env_file: Path = typer.Option(None, "--env-file", "-e", help=".env 文件路径"),
):
    """向 calls 端点投递一次 slot（用于测试端点）。"""
    from callrelay.delivery.client import CallDeliveryClient
    from callrelay.errors import ConfigError

    config = _read_config(env_file)
    if not config.calls.base_url:
        console.print(f"[red]配置错误：{ConfigError(['CALLS_BASE_URL'])}[/red]")
        raise typer.Exit(1)

    async def deliver():
        client = CallDeliveryClient(config.calls)
        try:
            return await client.send(slot, user)
        finally:
            await client.close()

    outcome = asyncio.run(deliver())
    if outcome.ok:
        console.print(f"[green]✓[/green] {outcome.mode} {outcome.status}：{escape(str(outcome.data))}")
    else:
        console.print(f"[red]✗ 投递失败：{escape(str(outcome.error))}[/red]")
        raise typer.Exit(1)


@app.command()
def status(
    env_file: Path = typer.Option(None, "--env-file", "-e", help=".env 文件路径"),
):
    """显示当前配置。"""
    config = _read_config(env_file)

    table = Table(title="callrelay 配置")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="yellow")

    def secret(value: str) -> str:
        return f"{value[:4]}..." if value else "[dim]未配置[/dim]"

    table.add_row("DLIVE_CHANNEL", config.dlive.channel or "[red]缺失[/red]")
    table.add_row("DLIVE_AUTH_KEY", secret(config.dlive.auth_key))
    table.add_row("DLIVE_STREAM_URL", config.dlive.stream_url)
    table.add_row("CALLS_BASE_URL", config.calls.base_url or "[red]缺失[/red]")
    table.add_row("CALLS_ENDPOINT", config.calls.endpoint)
    table.add_row("CALLS_SHARED_SECRET", secret(config.calls.shared_secret))
    table.add_row("CALLS_TIMEOUT_S", f"{config.calls.timeout_s:g}")
    table.add_row(
        "RECONNECT",
        f"{config.reconnect.strategy}, {config.reconnect.delay_s:g}s"
        + (f" (max {config.reconnect.max_delay_s:g}s)" if config.reconnect.strategy == "exponential" else ""),
    )

    console.print(table)
