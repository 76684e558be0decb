"""
数据流分层架构
  Layer 1 – Acquisition  : Alpha Vantage 分时数据获取
  Layer 2 – Cache        : MongoDB 文档缓存（分时 / 日 / 周 / 月）
  Layer 3 – Processing   : 原始时间序列清洗为 Candle
  Layer 4 – Aggregation  : 分时 → 日 → 周 / 月 汇总
  Freshness / RateLimit  : 缓存新鲜度策略、上游调用配额
"""
