"""Puppy Day booking API"""
