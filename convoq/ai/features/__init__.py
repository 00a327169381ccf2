"""Per-feature coordinators (summary, action items, search, meetings, decisions, scheduling, insights)"""
