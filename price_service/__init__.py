"""
股票行情缓存服务
为移动端行情客户端提供价格数据，尽量减少对限流上游（Alpha Vantage）的调用

架构分层：
  数据获取层 (Acquisition)  → 从 Alpha Vantage 拉取分时 K 线
  处理层     (Processing)   → 原始时间序列标准化为 Candle
  缓存层     (Cache)        → MongoDB 文档缓存（分时 / 日 / 周 / 月）
  新鲜度     (Freshness)    → 按粒度与交易时段判断缓存是否可用
  聚合层     (Aggregation)  → 分时 → 日 → 周 / 月 K 线汇总
"""

__version__ = "1.0.0"
