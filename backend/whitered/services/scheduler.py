from whitered import socketio
from whitered.broadcast import deliver


def schedule_removal(app, services, pending) -> None:
    """Drop a disconnected player once the grace window runs out.

    The worker only carries the removal token it was issued; a reconnect or
    an explicit leave clears the token on the player, and the stale worker
    then finds nothing to remove.
    """
    delay = float(app.config.get('RECONNECT_WINDOW_SEC', 60))
    app.logger.info(f"[timer-set] room={pending.code} sid={pending.sid} token={pending.token} delay={delay}s")

    def _worker(code: str, sid: str, token: int, wait: float):
        socketio.sleep(wait)
        with app.app_context():
            try:
                messages = services.sessions.expire(code, sid, token)
            except Exception:
                app.logger.exception(f"[timer-error] room={code} sid={sid}")
                return
            if not messages:
                app.logger.info(f"[timer-abort] room={code} sid={sid} token={token} superseded")
                return
            app.logger.info(f"[timer-fire] room={code} sid={sid} removed after grace window")
            deliver(messages)

    socketio.start_background_task(_worker, pending.code, pending.sid, pending.token, delay)


def start_reaper(app, services) -> None:
    """Periodically delete empty rooms that outlived ROOM_TTL_EMPTY_SEC.

    No-ops in TESTING mode unless ENABLE_REAPER_IN_TESTS is set.
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_REAPER_IN_TESTS'):
        return

    interval = float(app.config.get('ROOM_SWEEP_INTERVAL_SEC', 60))
    ttl = float(app.config.get('ROOM_TTL_EMPTY_SEC', 3600))

    def _worker():
        while True:
            socketio.sleep(interval)
            try:
                removed = services.registry.sweep_expired(ttl)
                services.limiter.prune()
            except Exception:
                app.logger.exception("[reaper-error] sweep failed")
                continue
            if removed:
                app.logger.info(f"[reaper] removed {len(removed)} idle room(s): {', '.join(removed)}")

    app.logger.info(f"[reaper-start] interval={interval}s ttl={ttl}s")
    socketio.start_background_task(_worker)
