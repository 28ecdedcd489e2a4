"""Payment Service — 決済シミュレーター"""
