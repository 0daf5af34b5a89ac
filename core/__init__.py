# Core module for Pomodoro Timer application: engine, stats and storage
