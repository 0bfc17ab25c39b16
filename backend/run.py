from bosstrack import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Use SocketIO server so members can subscribe to spawn alerts in dev
    socketio.run(app, debug=True)
