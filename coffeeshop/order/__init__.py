"""Order Service — 注文ワークフロー"""
