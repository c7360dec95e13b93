from sensorlink.runtime.container import (RuntimeContainer, build_container,
                                          configure_container)

__all__ = ["RuntimeContainer", "build_container", "configure_container"]
