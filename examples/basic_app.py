"""
Example showing how to build a pathroute tree with groups, middleware and plugins.
"""

from __future__ import annotations

from pathroute import Router

USERS = {"1": "ada", "2": "grace"}


def print_response(status, headers, body):
    print(status, headers, body)


def request_id(ctx):
    ctx.set_header("X-Request-Id", "demo")
    ctx.next()


def require_token(ctx):
    if ctx.path.endswith("/admin"):
        ctx.set_status(401)
        ctx.write("Unauthorized")
        ctx.finalize()
        return
    ctx.next()


def list_users(ctx):
    ctx.write(",".join(sorted(USERS.values())))
    ctx.finalize()


def show_user(ctx):
    user_id = ctx.segments[-1]
    ctx.write(USERS.get(user_id, "unknown"))
    ctx.finalize()


def build_router() -> Router:
    router = Router(name="demo", dispatch_sink=print_response).plug("logging", flags="print")
    router.use(request_id)

    users = router.group("/api/users")
    users.use(require_token)
    users.route("/", list_users)
    users.route("/:id", show_user)
    return router.freeze()


if __name__ == "__main__":
    app = build_router()
    for path in ("/api/users", "/api/users/2", "/api/users/admin"):
        app.dispatch(path)
