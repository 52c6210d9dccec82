"""
システムサービス
"""
