"""
Posyandu Health Records Backend

Patient registration, examinations, lab tests, triage assessments,
treatments and referrals for a community health post.
"""
