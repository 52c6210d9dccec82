"""
外部APIクライアント
"""
