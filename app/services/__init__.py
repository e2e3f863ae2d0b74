"""Order fulfillment control plane services"""
