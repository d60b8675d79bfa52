"""
CLI 命令接口
"""

import argparse
import logging
import sys

import yaml

from ..core.errors import RoutingError
from ..host import describe_routes
from ..infra.config import DEFAULT_CONFIG_PATH, get_default_config, load_config, save_config
from ..infra.settings import SettingsStore

logger = logging.getLogger(__name__)


def _setup_logging(level_name):
    logging.basicConfig(
        level=getattr(logging, (level_name or "INFO").upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def cmd_serve(args):
    """启动 WebSocket 桥接服务"""
    import uvicorn

    from ..web.app import create_app

    config = load_config(args.config)
    _setup_logging(args.log_level or config.get("logging", {}).get("level"))

    web = config.get("bridge", {}).get("web", {})
    host = args.host or web.get("host", "127.0.0.1")
    port = args.port or int(web.get("port", 8765))

    app = create_app(config, config_path=args.config)
    logger.info("Serving bridge on ws://%s:%s/ws/bridge", host, port)
    uvicorn.run(app, host=host, port=port, log_level=(args.log_level or "info").lower())


def cmd_config(args):
    """配置管理"""
    if args.init:
        save_config(get_default_config(), args.config)
        print(f"默认配置已写入: {args.config or DEFAULT_CONFIG_PATH}")
        return
    config = load_config(args.config)
    print(yaml.safe_dump(config, default_flow_style=False, allow_unicode=True))


def cmd_routes(args):
    """列出并校验 host 路由表"""
    config = load_config(args.config)
    try:
        groups = describe_routes(SettingsStore(config, persist=False))
    except RoutingError as e:
        print(f"路由表校验失败: {e}", file=sys.stderr)
        return 1

    total = 0
    for group_name, types in groups.items():
        print(f"{group_name}:")
        for message_type in types:
            print(f"  - {message_type}")
        total += len(types)
    print(f"共 {total} 条路由，校验通过")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog="webbridge", description="Host/UI message bridge")
    parser.add_argument("--config", help=f"配置文件路径 (默认 {DEFAULT_CONFIG_PATH})")
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="启动桥接服务")
    serve.add_argument("--host", help="监听地址")
    serve.add_argument("--port", type=int, help="监听端口")
    serve.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="日志级别")
    serve.set_defaults(func=cmd_serve)

    config = subparsers.add_parser("config", help="配置管理")
    group = config.add_mutually_exclusive_group()
    group.add_argument("--show", action="store_true", help="显示当前配置")
    group.add_argument("--init", action="store_true", help="写入默认配置")
    config.set_defaults(func=cmd_config)

    routes = subparsers.add_parser("routes", help="列出并校验路由表")
    routes.set_defaults(func=cmd_routes)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 1
    result = args.func(args)
    return result or 0


if __name__ == "__main__":
    sys.exit(main())
