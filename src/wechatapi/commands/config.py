"""Config commands -- view and modify the wechatapi config file.

Settings live in ``config.json`` under the wechatapi config directory
(:class:`~wechatapi.models.ClientConfig`). Environment variables still
override whatever is stored here at run time.
"""

from __future__ import annotations

import typer

from wechatapi.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)

_SECRET_KEYS = {"app_secret"}


@config_app.command("show")
def config_show() -> None:
    """Show the stored configuration, with the app secret masked.

    Example::

        wechatapi config show
        wechatapi --json config show
    """
    from wechatapi.config import get_config_dir, load_config

    config = load_config()
    data = config.model_dump(mode="json")
    for key in _SECRET_KEYS:
        if data.get(key):
            data[key] = "********"
    info(f"Config directory: {get_config_dir()}")
    format_response(data)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key (dot notation, e.g. 'prefixes.api')."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is coerced to the existing field's type (bool, int, float or
    str) and the result is validated before saving.

    Example::

        wechatapi config set app_id wx1234567890
        wechatapi config set app_secret_source env:WECHAT_SECRET
        wechatapi config set request.timeout 15
    """
    from wechatapi.config import load_config, save_config
    from wechatapi.models import ClientConfig

    data = load_config().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    coerced: object = value
    try:
        if isinstance(current, bool):
            coerced = value.lower() in ("true", "1", "yes")
        elif isinstance(current, int):
            coerced = int(value)
        elif isinstance(current, float):
            coerced = float(value)
    except ValueError:
        error(f"Expected {type(current).__name__} for {key}, got: {value}")
        raise typer.Exit(code=2) from None

    target[final_key] = coerced

    try:
        new_config = ClientConfig.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_config(new_config)
    shown = "********" if final_key in _SECRET_KEYS else coerced
    success(f"Set {key} = {shown}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset the configuration file to defaults."""
    from wechatapi.config import save_config
    from wechatapi.models import ClientConfig

    if not force and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_config(ClientConfig())
    success("Configuration reset to defaults.")
