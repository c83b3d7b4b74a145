"""数据库初始化脚本

创建数据表并汇报外部服务的配置情况。

用法:
    python init_db.py           # 只建表
    python init_db.py --demo    # 额外创建一对演示成员和私聊会话
"""
import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from database.session import init_db, get_session_factory, close_db
from config.settings import get_settings
from services.avatar_state import AvatarStateStore
from services.conversation import ConversationService


def print_header(text: str) -> None:
    print("\n" + "=" * 50)
    print(text)
    print("=" * 50)


def print_success(text: str) -> None:
    print(f"✓ {text}")


def print_warning(text: str) -> None:
    print(f"! {text}")


def report_capabilities(settings) -> None:
    """打印补全、嵌入、向量索引的配置情况（不发起网络请求）"""
    print_header("外部服务配置")

    if settings.servers:
        for name, server in settings.servers.items():
            print_success(f"补全服务器 {name}: {', '.join(server.models) or '无模型'}")
    else:
        print_warning("未配置补全服务器，分身回复将使用致歉消息")

    served = {model for server in settings.servers.values() for model in server.models}
    for label, model in (("回复模型", settings.avatar.completion.model), ("画像模型", settings.avatar.profile.model)):
        if model in served:
            print_success(f"{label} {model} 可用")
        else:
            print_warning(f"{label} {model} 没有对应服务器")

    embedding = settings.embedding
    if embedding.api_key or embedding.gemini_api_key:
        print_success(f"嵌入服务: {embedding.provider}")
    else:
        print_warning("未配置嵌入服务密钥，RAG 检索将被跳过")

    index = settings.vector_index
    if index.provider == "pinecone":
        pinecone = index.pinecone
        if pinecone.api_key and (pinecone.host or (pinecone.index and pinecone.environment)):
            print_success("向量索引: Pinecone")
        else:
            print_warning("向量索引选择了 Pinecone 但缺少 api_key / host")
    else:
        print_success(f"向量索引: sqlite-vec ({index.path})")


async def create_demo_data() -> None:
    """创建两名成员 alice / bob 和他们的私聊会话，并激活 bob 的分身"""
    session_factory = get_session_factory()
    conversations = ConversationService(session_factory)
    state_store = AvatarStateStore(session_factory)

    alice = await conversations.create_member("alice", "demo", name="Alice", is_online=True)
    bob = await conversations.create_member("bob", "demo", name="Bob", is_online=False)
    conversation = await conversations.create_conversation("demo", alice.id, bob.id)
    await state_store.activate("bob")

    print_header("演示数据")
    print(f"成员 Alice: {alice.id} (在线)")
    print(f"成员 Bob:   {bob.id} (离线，分身已激活)")
    print(f"会话:       {conversation.id}")
    print()
    print("发送一条消息给 Bob:")
    print('   curl -X POST "http://localhost:8000/v1/messages" \\')
    print('     -H "Content-Type: application/json" \\')
    print(f'     -d \'{{"workspace_id":"demo","member_id":{alice.id},'
          f'"conversation_id":{conversation.id},"body":"Hi Bob, are you around?"}}\'')


async def run(demo: bool) -> None:
    if not Path("config/servers.yaml").exists():
        print_warning("未找到 config/servers.yaml，使用默认配置和环境变量")
        print("  cp config/servers.example.yaml config/servers.yaml")

    settings = get_settings()

    try:
        print_header("正在初始化数据库...")
        await init_db()
        print_success(f"数据库初始化完成: {settings.database.url}")

        report_capabilities(settings)

        if demo:
            await create_demo_data()
    finally:
        await close_db()


def main():
    parser = argparse.ArgumentParser(description="Initialize the avatar engine database")
    parser.add_argument("--demo", action="store_true", help="create demo members and a conversation")
    args = parser.parse_args()

    try:
        asyncio.run(run(args.demo))
    except KeyboardInterrupt:
        print()
        print("操作已取消")
        sys.exit(1)
    except Exception as e:
        print()
        print(f"✗ 初始化失败: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
