"""
設定管理
"""
