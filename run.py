"""Avatar Engine 启动脚本

检查配置后启动 FastAPI 开发服务器。
"""
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

import uvicorn


class Colors:
    """终端颜色"""
    OKBLUE = '\033[94m'
    OKCYAN = '\033[96m'
    OKGREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'
    GRAY = '\033[90m'


def c(color: str, text: str) -> str:
    """为文本添加颜色"""
    if not sys.stdout.isatty():
        return text
    return f"{color}{text}{Colors.ENDC}"


def print_config_info(settings) -> None:
    """打印配置信息"""
    print(c(Colors.OKGREEN, "✓ 配置加载成功"))
    print()
    print(c(Colors.BOLD, "  服务配置:"))
    if settings.servers:
        for name, server in settings.servers.items():
            print(c(Colors.GRAY, f"    · {c(Colors.OKCYAN, name)}: {c(Colors.OKBLUE, ', '.join(server.models))}"))
    else:
        print(c(Colors.WARNING, "    · 未配置补全服务器"))
    print(c(Colors.GRAY, f"    嵌入服务: {c(Colors.OKBLUE, settings.embedding.provider)}"))
    print(c(Colors.GRAY, f"    向量索引: {c(Colors.OKBLUE, settings.vector_index.provider)}"))
    print(c(Colors.GRAY, f"    回复延迟: {c(Colors.OKBLUE, str(settings.avatar.response_delay_seconds))}s"))
    print()


def main():
    parser = argparse.ArgumentParser(description="Run the avatar engine API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="enable auto reload")
    parser.add_argument("--config", default="config/servers.yaml", help="settings file (not carried into --reload workers)")
    args = parser.parse_args()

    if not Path(args.config).exists():
        print(c(Colors.WARNING, f"未找到 {args.config}，使用默认配置和环境变量"))
        print(c(Colors.GRAY, "  cp config/servers.example.yaml config/servers.yaml"))
        print()

    try:
        from config.settings import reload_settings
        settings = reload_settings(args.config)
    except Exception as e:
        print(c(Colors.FAIL, f"✗ 配置加载失败: {e}"))
        print(c(Colors.WARNING, f"请检查 {args.config} 文件格式是否正确"))
        sys.exit(1)

    print_config_info(settings)
    print(c(Colors.OKGREEN, f"◉ 服务地址 http://{args.host}:{args.port}  文档 /docs"))
    print()

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="warning",
    )


if __name__ == "__main__":
    main()
