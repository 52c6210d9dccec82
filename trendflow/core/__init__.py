"""
コアビジネスロジック
"""
