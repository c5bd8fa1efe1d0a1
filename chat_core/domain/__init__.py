"""领域层模型与协议。

包含：
- models: Message / Chat / Attachment 数据模型。
- cancellation: 每次发送使用的取消句柄。
- conversation: 会话快照存储、登录协作者与 UI 观察者协议。
- exceptions: 业务异常类型定义。
"""
