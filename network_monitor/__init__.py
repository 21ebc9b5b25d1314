"""
Network Monitor - 网络监控聚合与缓存服务

负责：
- 按各自周期轮询节点、桥、bundler、区块浏览器
- 将响应规范化为带类型的快照并缓存在内存中
- 通过只读 REST API 提供最近一次成功的快照
"""

__version__ = "1.0.0"
