"""Shared constants and exceptions"""
