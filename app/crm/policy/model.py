"""RBAC model evaluated by the policy engine."""

# Pseudo-subject owning one tuple per protected endpoint. No user is ever
# granted it, so it never matches at request time.
ALL_APIS_SUBJECT = "_all_apis_"

RBAC_MODEL_TEXT = """
[request_definition]
r = sub, obj, act

[policy_definition]
p = sub, obj, act

[role_definition]
g = _, _

[policy_effect]
e = some(where (p.eft == allow))

[matchers]
m = g(r.sub, p.sub) && keyMatch2(r.obj, p.obj) && r.act == p.act
"""

REQUIRED_SECTIONS = ("r", "p", "g", "e", "m")
