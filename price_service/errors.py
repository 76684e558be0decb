"""
行情缓存服务异常定义

传播策略：
  ValidationError   → 立即在本地返回（HTTP 400）
  UpstreamError     → 透传到请求边界（HTTP 502），不做内联重试
  UpstreamThrottled → 上游限流，服务层视为"成功的空结果"，且不写缓存
  CacheReadFailure  → 服务层视为缓存未命中
  CacheWriteFailure → 服务层记录日志后吞掉，不影响返回
"""


class PriceServiceError(Exception):
    """行情服务异常基类"""
    pass


class ValidationError(PriceServiceError):
    """请求参数校验失败"""
    pass


class UpstreamError(PriceServiceError):
    """上游数据源传输 / HTTP / 业务错误"""
    pass


class UpstreamThrottled(PriceServiceError):
    """上游返回限流提示（Note / Information）"""
    pass


class CacheReadFailure(PriceServiceError):
    """缓存存储读取失败"""
    pass


class CacheWriteFailure(PriceServiceError):
    """缓存存储写入失败"""
    pass
