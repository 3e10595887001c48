"""Photography conditions planner: matches tasks to golden hour and weather windows."""
