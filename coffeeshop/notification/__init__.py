"""Notification Service — 通知シンク"""
