"""ServiceHub appointment and availability backend"""
