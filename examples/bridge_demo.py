"""
WebBridge 使用示例

在同一进程内连接 host 与 UI，演示流式分析、节流显示与取消。
"""

import asyncio
import logging

from webbridge.channel import MemoryTransport
from webbridge.client import BridgeClient
from webbridge.core.messages import StreamingDomain
from webbridge.core.streaming import StreamingPolicy
from webbridge.host import BridgeHost
from webbridge.infra.config import get_default_config
from webbridge.infra.settings import SettingsStore


class EchoGenerator:
    """逐词回显用户输入的假模型"""

    def __init__(self, delay: float = 0.05):
        self.delay = delay

    async def stream(self, messages, *, model):
        for word in messages[-1]["content"].split():
            await asyncio.sleep(self.delay)
            yield word + " "


def _print_updates(label):
    def listener(event, snap):
        if event in ("display", "settled", "cancelled"):
            print(f"  [{label}] {event:<9} tokens={snap.token_count:<3} display={snap.display_content!r}")
    return listener


async def _connect(generator):
    host_end, ui_end = MemoryTransport.pair()
    host = BridgeHost(host_end, settings=SettingsStore(get_default_config(), persist=False), generator=generator)
    serve = asyncio.create_task(host.serve())
    client = BridgeClient(ui_end, policy=StreamingPolicy(buffer_seconds=0.3, debounce_seconds=0.1))
    await client.start()
    return host, client, serve


async def demo_streaming():
    """演示缓冲 + 防抖的流式显示"""
    print("=" * 60)
    print("示例 1: 流式分析")
    print("=" * 60)

    host, client, serve = await _connect(EchoGenerator())
    client.streams.add_listener(StreamingDomain.ANALYSIS, _print_updates("analysis"))

    await client.analyze_prose("the rain fell on the quiet town all night long")
    result = await client.state.wait_for_result(StreamingDomain.ANALYSIS)
    print(f"✓ 结果: {result['result']!r}")

    await client.close()
    await serve
    print()


async def demo_cancel():
    """演示取消正在进行的请求"""
    print("=" * 60)
    print("示例 2: 取消请求")
    print("=" * 60)

    host, client, serve = await _connect(EchoGenerator(delay=0.1))
    client.streams.add_listener(StreamingDomain.DICTIONARY, _print_updates("dictionary"))

    await client.lookup_dictionary("ephemeral", context_text="an ephemeral joy that faded by morning")
    await asyncio.sleep(0.5)
    request_id = await client.cancel(StreamingDomain.DICTIONARY)
    print(f"✓ 已取消: {request_id}")
    await asyncio.sleep(0.2)

    await client.close()
    await serve
    print()


async def main():
    logging.basicConfig(level=logging.WARNING)
    await demo_streaming()
    await demo_cancel()


if __name__ == "__main__":
    asyncio.run(main())
